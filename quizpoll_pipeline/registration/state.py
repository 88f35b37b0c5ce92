"""Per-tenant selection state with TTL expiry and an LRU bound."""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from quizpoll_pipeline.models import Event, utcnow

DEFAULT_TTL = timedelta(minutes=30)
DEFAULT_MAX_TENANTS = 1000


class SelectorState(str, Enum):
    NO_SELECTION = "no_selection"
    POLLS_CHOSEN = "polls_chosen"
    GAMES_CHOSEN = "games_chosen"
    SUBMITTING = "submitting"
    DONE = "done"


class WinningEvent(BaseModel):
    """An upcoming, unregistered event that won one of the selected polls."""

    event: Event
    poll_id: str
    vote_count: int
    voters: list[str] = []

    @property
    def external_id(self) -> str:
        return self.event.external_id


@dataclass
class Selection:
    """One tenant's in-progress registration flow."""

    state: SelectorState = SelectorState.NO_SELECTION
    poll_ids: list[str] = field(default_factory=list)  # Insertion order kept
    winners: dict[str, WinningEvent] = field(default_factory=dict)
    event_ids: list[str] = field(default_factory=list)
    touched_at: datetime = field(default_factory=utcnow)


class SelectionStore:
    """Selections keyed by tenant.

    Entries idle for longer than ``ttl`` are dropped on access; beyond
    ``max_tenants`` entries the least recently used one is evicted.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_tenants: int = DEFAULT_MAX_TENANTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = ttl
        self.max_tenants = max_tenants
        self.clock = clock
        self._entries: OrderedDict[str, Selection] = OrderedDict()

    def _expired(self, selection: Selection) -> bool:
        return self.clock() - selection.touched_at > self.ttl

    def peek(self, tenant_id: str) -> Optional[Selection]:
        """Live selection for the tenant, or None (expired entries are dropped)."""
        selection = self._entries.get(tenant_id)
        if selection is None:
            return None
        if self._expired(selection):
            del self._entries[tenant_id]
            return None
        return selection

    def get(self, tenant_id: str) -> Selection:
        """Live selection, or a fresh empty one (not stored until ``save``)."""
        return self.peek(tenant_id) or Selection()

    def save(self, tenant_id: str, selection: Selection) -> None:
        selection.touched_at = self.clock()
        self._entries[tenant_id] = selection
        self._entries.move_to_end(tenant_id)
        while len(self._entries) > self.max_tenants:
            self._entries.popitem(last=False)

    def clear(self, tenant_id: str) -> None:
        self._entries.pop(tenant_id, None)

    def __len__(self) -> int:
        return len(self._entries)
