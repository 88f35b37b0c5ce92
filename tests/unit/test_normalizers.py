"""Tests for date and package-key normalizers."""

from datetime import datetime, timezone

import pytest

from quizpoll_pipeline.models import RawEvent
from quizpoll_pipeline.normalizers import derive_group_key, normalize_event, normalize_type_name, parse_civil_datetime
from quizpoll_pipeline.normalizers.dates import infer_year
from quizpoll_pipeline.normalizers.groups import is_classic_type, split_group_key
from tests.conftest import NOW


class TestCivilDates:
    """Tests for civil date parsing under the fixed UTC+3 offset."""

    # 4 November 2026, 19:30 in UTC+3
    EXPECTED = datetime(2026, 11, 4, 16, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("date_text,time_text", [
        ("04.11.2026", "в 19:30"),
        ("04.11.26", "19:30"),
        ("4.11.2026", "at 19:30"),
        ("2026-11-04", "19:30"),
        ("2026-11-04T19:30:00", None),
        ("4 ноября 2026", "в 19:30"),
        ("4 ноября", "в 19:30"),
        ("4 ноя", "19:30"),
        ("4 ноября, пт", "в 19:30"),
        ("пт, 4 ноября", "в 19:30"),
        ("04.11", "в 19:30"),
        ("4 ноября в 19:30", None),
    ])
    def test_formats_resolve_to_same_instant(self, date_text: str, time_text: str):
        """Every supported encoding of the same civil time gives one instant."""
        assert parse_civil_datetime(date_text, time_text, now=NOW) == self.EXPECTED

    def test_instant_is_utc_aware(self):
        instant = parse_civil_datetime("02.01.2027", "в 20:00", now=NOW)
        assert instant.tzinfo is not None
        assert instant == datetime(2027, 1, 2, 17, 0, tzinfo=timezone.utc)

    def test_offset_crosses_midnight(self):
        """01:00 local is the previous day in UTC."""
        instant = parse_civil_datetime("10.07.2026", "в 01:00", now=NOW)
        assert instant == datetime(2026, 7, 9, 22, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("month,expected_year", [
        (5, 2027),
        (1, 2027),
        (6, 2026),
        (7, 2026),
        (12, 2026),
    ])
    def test_year_inference_from_june(self, month: int, expected_year: int):
        """Months before the current one roll over to next year."""
        assert infer_year(month, NOW, 3) == expected_year

    def test_year_inference_in_text(self):
        may = parse_civil_datetime("20 мая", "в 19:00", now=NOW)
        june = parse_civil_datetime("20 июня", "в 19:00", now=NOW)
        assert may.year == 2027
        assert june.year == 2026

    @pytest.mark.parametrize("date_text,time_text", [
        ("32.01.2026", "в 19:30"),
        ("30.02.2026", "в 19:30"),
        ("04.13.2026", "в 19:30"),
        ("04.11.2026", "в 25:00"),
        ("04.11.2026", "в 19:75"),
        ("4 брюмера", "в 19:30"),
        ("скоро", "в 19:30"),
        ("04.11.2026", None),
        ("", ""),
    ])
    def test_invalid_input_returns_none(self, date_text: str, time_text: str):
        assert parse_civil_datetime(date_text, time_text, now=NOW) is None


class TestGroupKeys:
    """Tests for package key derivation."""

    @pytest.mark.parametrize("title,key,type_name,number", [
        ("Квиз, плиз! #1212", "Квиз, плиз#1212", "Квиз, плиз", "1212"),
        ("Квиз, плиз #1212", "Квиз, плиз#1212", "Квиз, плиз", "1212"),
        ("[music party] рашн эдишн #7", "[music party] рашн эдишн#7", "[music party] рашн эдишн", "7"),
        ("Кино и сериалы!!! # 42", "Кино и сериалы#42", "Кино и сериалы", "42"),
        ("Квиз #1 #2", "Квиз #1#2", "Квиз #1", "2"),
    ])
    def test_derive(self, title: str, key: str, type_name: str, number: str):
        group = derive_group_key(title)
        assert group.key == key
        assert group.type_name == type_name
        assert group.number == number

    @pytest.mark.parametrize("title", [
        "Квиз, плиз!",
        "#1212",
        "Квиз, плиз! #",
        "",
    ])
    def test_no_package(self, title: str):
        assert derive_group_key(title) is None

    @pytest.mark.parametrize("title", [
        "Квиз, плиз! #1212",
        "[music party] рашн эдишн #7",
        "  Кино   и сериалы!  #42 ",
    ])
    def test_idempotent(self, title: str):
        """Deriving twice, or from a rebuilt title, gives the same key."""
        first = derive_group_key(title)
        assert derive_group_key(title) == first
        rebuilt = f"{first.type_name} #{first.number}"
        assert derive_group_key(rebuilt).key == first.key

    def test_split_roundtrip(self):
        assert split_group_key("[music party] 2000-е#7") == ("[music party] 2000-е", "7")

    @pytest.mark.parametrize("name,expected", [
        ("Квиз, плиз!", True),
        ("квиз плиз", True),
        ("Квиз, плиз: NEW", False),
        ("[music party] рашн эдишн", False),
    ])
    def test_classic_type(self, name: str, expected: bool):
        assert is_classic_type(name) is expected

    def test_normalize_type_name(self):
        assert normalize_type_name("  Квиз,   плиз!!  ") == "Квиз, плиз"


class TestNormalizeEvent:
    """Tests for RawEvent -> Event."""

    def raw(self, **overrides) -> RawEvent:
        fields = dict(
            external_id="g-1",
            title="Квиз, плиз! #1212",
            date_text="4 ноября, пт",
            time_text="в 19:30",
            venue="  Бар   Шляпа ",
            address="Невский, 1",
            price="500 ₽",
            url="https://spb.quizplease.ru/game/g-1",
        )
        fields.update(overrides)
        return RawEvent(**fields)

    def test_builds_canonical_event(self):
        event = normalize_event(self.raw(), "chat-1", "https://spb.quizplease.ru/schedule", now=NOW)
        assert event.instant == datetime(2026, 11, 4, 16, 30, tzinfo=timezone.utc)
        assert event.group_key == "Квиз, плиз#1212"
        assert event.type_name == "Квиз, плиз"
        assert event.number == "1212"
        assert event.venue == "Бар Шляпа"
        assert event.first_seen == NOW
        assert event.last_seen == NOW
        assert not event.registered

    def test_unparseable_date_skips(self):
        assert normalize_event(self.raw(date_text="когда-нибудь"), "chat-1", "u", now=NOW) is None

    def test_missing_number_skips(self):
        assert normalize_event(self.raw(title="Квиз, плиз!"), "chat-1", "u", now=NOW) is None

    def test_blank_optional_fields_become_none(self):
        event = normalize_event(self.raw(venue="   ", price=""), "chat-1", "u", now=NOW)
        assert event.venue is None
        assert event.price is None

    def test_extracted_type_and_number_win_over_title(self):
        raw = self.raw(title="Кино и сериалы #5", game_type="[кино и сериалы]", game_number="05")
        event = normalize_event(raw, "chat-1", "u", now=NOW)
        assert event.group_key == "[кино и сериалы]#5"
        assert event.type_name == "[кино и сериалы]"
        assert event.title == "Кино и сериалы #5"

    def test_title_used_without_extracted_parts(self):
        event = normalize_event(self.raw(game_type="[кино]", game_number=None), "chat-1", "u", now=NOW)
        assert event.group_key == "Квиз, плиз#1212"
