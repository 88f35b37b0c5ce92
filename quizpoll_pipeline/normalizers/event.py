"""RawEvent -> Event normalization."""

from datetime import datetime
from typing import Optional

from quizpoll_pipeline.models import Event, RawEvent, utcnow
from quizpoll_pipeline.normalizers.dates import DEFAULT_UTC_OFFSET_HOURS, parse_civil_datetime
from quizpoll_pipeline.normalizers.groups import derive_group_key, group_key_from_parts


def clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


def normalize_event(
    raw: RawEvent,
    tenant_id: str,
    source_url: str,
    now: Optional[datetime] = None,
    offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> Optional[Event]:
    """Build a canonical Event, or None if the record must be skipped."""
    now = now or utcnow()

    instant = parse_civil_datetime(raw.date_text, raw.time_text, now=now, offset_hours=offset_hours)
    if instant is None:
        return None

    if raw.game_type and raw.game_number:
        group = group_key_from_parts(raw.game_type, raw.game_number)
    else:
        group = derive_group_key(raw.title)
    if group is None:
        return None

    return Event(
        tenant_id=tenant_id,
        external_id=raw.external_id,
        title=" ".join(raw.title.split()),
        instant=instant,
        venue=clean(raw.venue),
        address=clean(raw.address),
        price=clean(raw.price),
        difficulty=clean(raw.difficulty),
        status=clean(raw.status),
        url=raw.url,
        group_key=group.key,
        type_name=group.type_name,
        number=group.number,
        source_url=source_url,
        first_seen=now,
        last_seen=now,
        last_updated=now,
    )
