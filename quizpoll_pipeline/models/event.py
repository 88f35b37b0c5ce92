"""Event records: raw scraped rows, canonical catalog rows, derived packages."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawEvent(BaseModel):
    """One schedule record as extracted, before normalization."""

    external_id: str
    title: str  # "Квиз, плиз! #1212" or "[music party] рашн эдишн #7"
    game_type: Optional[str] = None  # Title part before "#", bracket content when present
    game_number: Optional[str] = None
    date_text: str  # "4 ноября", "02.01.2026", "4 ноября, пт"
    time_text: Optional[str] = None  # "в 19:30"
    venue: Optional[str] = None
    address: Optional[str] = None
    price: Optional[str] = None
    difficulty: Optional[str] = None
    status: Optional[str] = None
    url: str


class Event(BaseModel):
    """Canonical catalog row, unique per (tenant_id, external_id)."""

    tenant_id: str
    external_id: str
    title: str
    instant: datetime  # Absolute, timezone-aware UTC

    # Display
    venue: Optional[str] = None
    address: Optional[str] = None
    price: Optional[str] = None
    difficulty: Optional[str] = None
    status: Optional[str] = None
    url: str

    # Package
    group_key: str  # "<type_name>#<number>"
    type_name: str
    number: str

    source_url: str
    excluded: bool = False
    registered: bool = False
    registered_at: Optional[datetime] = None

    first_seen: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    def is_past(self, now: Optional[datetime] = None) -> bool:
        return self.instant < (now or utcnow())


class EventGroup(BaseModel):
    """A package: all date-instances of one numbered event type.

    Derived on every query, never stored.
    """

    group_key: str
    type_name: str
    number: str
    events: list[Event] = Field(default_factory=list)

    played: bool = False
    registered_count: int = 0
    polled_by_package: bool = False
    polled_by_date: bool = False

    @computed_field
    @property
    def count(self) -> int:
        return len(self.events)


class EventFilters(BaseModel):
    """Filters for upcoming-event queries."""

    days_ahead: Optional[int] = None  # None = no upper bound
    include_played: bool = False
    include_excluded: bool = False


class SyncStats(BaseModel):
    """Counters returned by one sync run."""

    added: int = 0
    skipped: int = 0
    excluded: int = 0
