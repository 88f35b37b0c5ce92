"""Shared test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from quizpoll_pipeline.models import Event, Poll, PollOption, Vote
from quizpoll_pipeline.normalizers.groups import derive_group_key
from quizpoll_pipeline.store import JsonCatalogStore

# 2026-06-15 12:00 UTC (15:00 in UTC+3)
NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

TENANT = "chat-1"
SOURCE_URL = "https://spb.quizplease.ru/schedule"

CARD = """
<div class="game-card">
  <div class="game-card__name-wrapper">
    <a class="game-card__name" href="/game/{id}">{title}</a>
    <div class="game-card__name">#{number}</div>
  </div>
  <div class="game-card__date">{date}</div>
  <div class="game-card__location-wrapper">
    <div class="game-card__location-text">
      <div class="game-card__location-text__title">Бар Шляпа <button>Карта</button></div>
      <div class="game-card__location-text__subtitle">Невский, 1</div>
    </div>
    <div class="game-card__location-text">{time}</div>
  </div>
  <div class="game-card__cost-title">500 ₽</div>
  <div class="badge-difficulty__title">Средняя</div>
</div>
"""

COLUMN = """
<div class="schedule-column" id="{id}">
  <div class="schedule-block">
    <a class="schedule-block-head" href="/game/{id}">
      <div class="h2 h2-game-card h2-left">{title}</div>
      <div class="h2 h2-game-card">#{number}</div>
    </a>
    <div class="block-date-with-language-game">{date}</div>
    <div class="schedule-info"><div class="techtext">{time}</div></div>
    <div class="schedule-block-info-bar">Лофт</div>
    <div class="techtext-halfwhite">Литейный, 2</div>
    <div class="new-price"><div class="price">600 ₽</div></div>
  </div>
</div>
"""


def card(id="101", title="Квиз, плиз!", number="1212", date="4 ноября, пт", time="в 19:30") -> str:
    return CARD.format(id=id, title=title, number=number, date=date, time=time)


def column(id="55", title="[music party] рашн эдишн", number="7", date="5 ноября, сб RU", time="в 20:00") -> str:
    return COLUMN.format(id=id, title=title, number=number, date=date, time=time)


def make_event(
    external_id: str,
    title: str = "Квиз, плиз! #1212",
    hours_ahead: float = 24,
    tenant_id: str = TENANT,
    venue: Optional[str] = "Бар Шляпа",
    seen_at: datetime = NOW,
    **overrides,
) -> Event:
    """Build a normalized event relative to NOW."""
    group = derive_group_key(title)
    fields = dict(
        tenant_id=tenant_id,
        external_id=external_id,
        title=title,
        instant=NOW + timedelta(hours=hours_ahead),
        venue=venue,
        url=f"https://spb.quizplease.ru/game/{external_id}",
        group_key=group.key,
        type_name=group.type_name,
        number=group.number,
        source_url=SOURCE_URL,
        first_seen=seen_at,
        last_seen=seen_at,
        last_updated=seen_at,
    )
    fields.update(overrides)
    return Event(**fields)


def make_poll(poll_id: str, external_ids: list[str], tenant_id: str = TENANT, **overrides) -> Poll:
    """Poll with one option per event plus the unavailable option last."""
    options = [PollOption.event(poll_id, i, eid) for i, eid in enumerate(external_ids)]
    options.append(PollOption.unavailable(poll_id, len(external_ids)))
    fields = dict(
        poll_id=poll_id,
        tenant_id=tenant_id,
        message_id=100,
        title="Квиз, плиз (Классика) #1212",
        options=options,
        created_at=NOW,
    )
    fields.update(overrides)
    return Poll(**fields)


def make_vote(poll_id: str, user_id: int, option_ids: list[int], name: Optional[str] = None) -> Vote:
    return Vote(
        poll_id=poll_id,
        user_id=user_id,
        display_name=name or f"user_{user_id}",
        option_ids=option_ids,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    """Clock returning the fixed NOW."""
    return lambda: NOW


@pytest.fixture
def store() -> JsonCatalogStore:
    """In-memory catalog store."""
    return JsonCatalogStore()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "catalog.json"
