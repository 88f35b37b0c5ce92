"""Turn events into poll specs that fit the provider's option limit.

Each poll holds at most ``max_options - 1`` events; the last slot is always
the "can't make it" option.
"""

import math
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from quizpoll_pipeline.config import PROVIDER_MAX_POLL_OPTIONS
from quizpoll_pipeline.models import UNAVAILABLE_LABEL, Event, EventGroup, PollChoice, PollSpec
from quizpoll_pipeline.normalizers.dates import DEFAULT_UTC_OFFSET_HOURS, to_local
from quizpoll_pipeline.normalizers.groups import is_classic_type

MAX_TITLE_LENGTH = 50

OptionLabel = Callable[[Event, int], str]


def clamp_max_options(max_options: int) -> int:
    """Keep the limit within [2, provider maximum]."""
    return max(2, min(max_options, PROVIDER_MAX_POLL_OPTIONS))


def truncate(text: str, limit: int = MAX_TITLE_LENGTH) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def package_label(event: Event, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> str:
    """'04.11 в 19:30 Бар Шляпа'"""
    local = to_local(event.instant, offset_hours)
    return f"{local:%d.%m} в {local:%H:%M} {event.venue or ''}".strip()


def window_label(event: Event, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> str:
    """'04.11 19:30 - Квиз, плиз! #1212 (Бар Шляпа)'"""
    local = to_local(event.instant, offset_hours)
    return f"{local:%d.%m %H:%M} - {truncate(event.title)} ({event.venue or ''})".strip()


def package_title(type_name: str, number: str) -> str:
    if is_classic_type(type_name):
        return f"Квиз, плиз (Классика) #{number}"
    return f"Квиз Плиз. {type_name} #{number}"


def window_title(start: date, end: date) -> str:
    return f"Игры с {start:%d.%m} по {end:%d.%m}"


def build_polls(
    events: list[Event],
    max_options: int,
    title: str,
    group_key: Optional[str] = None,
    label: OptionLabel = window_label,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> list[PollSpec]:
    """Sort events chronologically and split them into poll specs.

    Args:
        events: Events to offer
        max_options: Provider option limit per poll (clamped to 2..10)
        title: Poll question; " (i/n)" is appended when several polls result
        group_key: Package key for package polls, None for date-window polls
        label: Option label formatter
        offset_hours: Fixed UTC offset used for labels

    Returns:
        One PollSpec per chunk, each ending with the unavailable option
    """
    if not events:
        return []

    chunk_size = clamp_max_options(max_options) - 1
    ordered = sorted(events, key=lambda e: e.instant)
    total = math.ceil(len(ordered) / chunk_size)

    specs = []
    for index in range(total):
        chunk = ordered[index * chunk_size:(index + 1) * chunk_size]
        choices = [PollChoice(label=label(e, offset_hours), external_id=e.external_id) for e in chunk]
        choices.append(PollChoice(label=UNAVAILABLE_LABEL))
        question = f"{title} ({index + 1}/{total})" if total > 1 else title
        specs.append(PollSpec(title=question, group_key=group_key, options=choices))
    return specs


def build_package_polls(
    group: EventGroup,
    max_options: int = PROVIDER_MAX_POLL_OPTIONS,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> list[PollSpec]:
    """Polls offering every date of one package."""
    return build_polls(
        group.events,
        max_options,
        package_title(group.type_name, group.number),
        group_key=group.group_key,
        label=package_label,
        offset_hours=offset_hours,
    )


def build_window_polls(
    events: list[Event],
    start: date,
    end: date,
    max_options: int = PROVIDER_MAX_POLL_OPTIONS,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> list[PollSpec]:
    """Polls offering every event whose local date falls in [start, end]."""
    in_window = [e for e in events if start <= to_local(e.instant, offset_hours).date() <= end]
    return build_polls(
        in_window,
        max_options,
        window_title(start, end),
        label=window_label,
        offset_hours=offset_hours,
    )


def window_for_days(
    days: int, now: datetime, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS
) -> tuple[date, date]:
    """(today, today + days) as local calendar dates."""
    today = to_local(now, offset_hours).date()
    return today, today + timedelta(days=days)
