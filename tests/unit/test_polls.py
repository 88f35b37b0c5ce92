"""Tests for poll building, publishing and tallying."""

import asyncio
from datetime import date

import pytest

from quizpoll_pipeline.models import UNAVAILABLE_LABEL, BallotAnswer, EventGroup, SentPoll
from quizpoll_pipeline.polls import (
    build_package_polls,
    build_polls,
    build_window_polls,
    publish_polls,
    record_ballot,
    tally,
    winners,
)
from quizpoll_pipeline.polls.builder import clamp_max_options, package_title, truncate, window_for_days
from tests.conftest import NOW, TENANT, make_event, make_poll, make_vote


class FakeMessenger:
    def __init__(self):
        self.sent = []

    async def send_poll(self, tenant_id: str, question: str, options: list[str]) -> SentPoll:
        self.sent.append((tenant_id, question, options))
        n = len(self.sent)
        return SentPoll(poll_id=f"tg-{n}", message_id=1000 + n)


class TestBuildPolls:
    """Tests for splitting events across polls."""

    def events(self, count: int):
        return [make_event(f"e{i:02d}", hours_ahead=24 + i) for i in range(count)]

    def test_chunks_respect_option_limit(self):
        specs = build_polls(self.events(23), 10, "Квиз")

        assert [len(s.options) for s in specs] == [10, 10, 6]
        assert [s.title for s in specs] == ["Квиз (1/3)", "Квиз (2/3)", "Квиз (3/3)"]
        for spec in specs:
            assert spec.options[-1].label == UNAVAILABLE_LABEL
            assert spec.options[-1].is_unavailable
            assert all(not c.is_unavailable for c in spec.options[:-1])

    def test_chronological_across_chunks(self):
        events = list(reversed(self.events(12)))
        specs = build_polls(events, 10, "Квиз")
        offered = [c.external_id for s in specs for c in s.options if not c.is_unavailable]
        assert offered == [f"e{i:02d}" for i in range(12)]

    def test_single_poll_has_plain_title(self):
        specs = build_polls(self.events(3), 10, "Квиз")
        assert len(specs) == 1
        assert specs[0].title == "Квиз"

    def test_no_events_no_polls(self):
        assert build_polls([], 10, "Квиз") == []

    @pytest.mark.parametrize("requested,expected", [(1, 2), (2, 2), (7, 7), (10, 10), (50, 10)])
    def test_clamp(self, requested: int, expected: int):
        assert clamp_max_options(requested) == expected

    def test_minimum_limit_gives_one_event_per_poll(self):
        specs = build_polls(self.events(3), 0, "Квиз")
        assert [len(s.options) for s in specs] == [2, 2, 2]


class TestLabelsAndTitles:
    def test_package_polls(self):
        events = [make_event("a2", hours_ahead=48), make_event("a1", hours_ahead=24)]
        group = EventGroup(group_key="Квиз, плиз#1212", type_name="Квиз, плиз", number="1212", events=events)

        spec, = build_package_polls(group)

        assert spec.title == "Квиз, плиз (Классика) #1212"
        assert spec.group_key == "Квиз, плиз#1212"
        # NOW + 24h is 16.06 15:00 in UTC+3
        assert [c.label for c in spec.options] == [
            "16.06 в 15:00 Бар Шляпа",
            "17.06 в 15:00 Бар Шляпа",
            UNAVAILABLE_LABEL,
        ]

    def test_themed_package_title(self):
        assert package_title("[music party] 2000-е", "7") == "Квиз Плиз. [music party] 2000-е #7"

    def test_window_labels(self):
        event = make_event("e1", title="Кино и сериалы #10", venue="Лофт")
        specs = build_window_polls([event], date(2026, 6, 15), date(2026, 6, 22))
        assert specs[0].title == "Игры с 15.06 по 22.06"
        assert specs[0].group_key is None
        assert specs[0].options[0].label == "16.06 15:00 - Кино и сериалы #10 (Лофт)"

    def test_truncate(self):
        assert truncate("x" * 50) == "x" * 50
        assert truncate("x" * 60) == "x" * 47 + "..."


class TestWindow:
    def test_window_uses_local_dates(self):
        start, end = window_for_days(7, NOW)
        assert (start, end) == (date(2026, 6, 15), date(2026, 6, 22))

        events = [
            make_event("late-evening", hours_ahead=24 * 7 + 8),  # 22.06 23:00 local
            make_event("after-midnight", hours_ahead=24 * 7 + 9),  # 23.06 00:00 local
            make_event("tomorrow", hours_ahead=24),
        ]
        specs = build_window_polls(events, start, end)

        offered = [c.external_id for c in specs[0].options if not c.is_unavailable]
        assert offered == ["tomorrow", "late-evening"]

    def test_empty_window(self):
        assert build_window_polls([make_event("e1", hours_ahead=24 * 30)], date(2026, 6, 15), date(2026, 6, 22)) == []


class TestPublish:
    def test_publish_persists_polls(self, store):
        messenger = FakeMessenger()
        specs = build_polls([make_event(f"e{i}", hours_ahead=24 + i) for i in range(3)], 3, "Квиз")

        async def go():
            polls = await publish_polls(messenger, store, TENANT, specs)
            return polls, await store.list_unprocessed_polls(TENANT)

        polls, unprocessed = asyncio.run(go())

        assert [p.poll_id for p in polls] == ["tg-1", "tg-2"]
        assert [p.message_id for p in polls] == [1001, 1002]
        first = polls[0]
        assert [(o.option_id, o.external_id) for o in first.options] == [(0, "e0"), (1, "e1"), (2, None)]
        assert first.options[-1].is_unavailable
        assert messenger.sent[0][1] == "Квиз (1/2)"
        assert messenger.sent[0][2][-1] == UNAVAILABLE_LABEL
        # No ballots yet
        assert unprocessed == []


class TestBallots:
    def test_unknown_poll_ignored(self, store):
        async def go():
            accepted = await record_ballot(store, BallotAnswer(poll_id="nope", user_id=1, option_ids=[0]))
            return accepted, await store.list_votes("nope")

        accepted, votes = asyncio.run(go())
        assert accepted is False
        assert votes == []

    def test_revote_replaces(self, store):
        async def go():
            await store.insert_poll(make_poll("p1", ["a", "b"]))
            await record_ballot(store, BallotAnswer(poll_id="p1", user_id=1, username="owl", first_name="Сова", option_ids=[0, 1]))
            await record_ballot(store, BallotAnswer(poll_id="p1", user_id=1, username="owl", first_name="Сова", option_ids=[1]))
            return await store.list_votes("p1")

        votes = asyncio.run(go())
        assert len(votes) == 1
        assert votes[0].option_ids == [1]
        assert votes[0].display_name == "@owl Сова"

    @pytest.mark.parametrize("fields,expected", [
        ({"username": "owl"}, "@owl"),
        ({"first_name": "Анна", "last_name": "К."}, "Анна К."),
        ({}, "user_5"),
    ])
    def test_display_name(self, fields: dict, expected: str):
        assert BallotAnswer(poll_id="p", user_id=5, **fields).display_name == expected


class TestTally:
    """A=3, B=3, C=1 and 'can't make it'=2."""

    def seed(self, store):
        async def go():
            await store.insert_poll(make_poll("p1", ["A", "B", "C"]))
            ballots = {
                1: [0, 1],
                2: [0],
                3: [0],
                4: [1],
                5: [1],
                6: [2],
                7: [3],
                8: [3],
            }
            for user_id, option_ids in ballots.items():
                await store.upsert_vote(make_vote("p1", user_id, option_ids))
        asyncio.run(go())

    def test_counts_distinct_voters(self, store):
        self.seed(store)
        tallies = asyncio.run(tally(store, "p1"))

        assert [(t.option_id, t.vote_count) for t in tallies] == [(0, 3), (1, 3), (3, 2), (2, 1)]
        assert tallies[0].voters == ["user_1", "user_2", "user_3"]

    def test_ties_all_win(self, store):
        self.seed(store)
        top = winners(asyncio.run(tally(store, "p1")), min_votes=2)
        assert [t.external_id for t in top] == ["A", "B"]

    def test_threshold(self, store):
        self.seed(store)
        assert winners(asyncio.run(tally(store, "p1")), min_votes=4) == []

    def test_revote_changes_winner(self, store):
        self.seed(store)

        async def go():
            await store.upsert_vote(make_vote("p1", 6, [0]))
            return winners(await tally(store, "p1"))

        assert [t.external_id for t in asyncio.run(go())] == ["A"]

    def test_unavailable_never_wins(self, store):
        async def go():
            await store.insert_poll(make_poll("p2", ["A"]))
            for user_id in (1, 2, 3):
                await store.upsert_vote(make_vote("p2", user_id, [1]))
            await store.upsert_vote(make_vote("p2", 4, [0]))
            return winners(await tally(store, "p2"), min_votes=1)

        assert [t.external_id for t in asyncio.run(go())] == ["A"]

    def test_no_votes_no_winner(self, store):
        async def go():
            await store.insert_poll(make_poll("p3", ["A"]))
            return winners(await tally(store, "p3"), min_votes=0)

        assert asyncio.run(go()) == []

    def test_unknown_poll(self, store):
        assert asyncio.run(tally(store, "nope")) == []
