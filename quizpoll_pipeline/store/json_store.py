"""File-backed catalog store.

The whole catalog lives in one JSON document rewritten after each mutation.
A mutation whose write fails is rolled back to the last written document.
Methods never await while touching in-memory state, so each call is atomic
with respect to other coroutines on the same loop.
"""

import json
from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console

from quizpoll_pipeline.errors import StoreFailure
from quizpoll_pipeline.models import (
    Event,
    EventFilters,
    EventGroup,
    Poll,
    PollOption,
    PollSummary,
    TeamInfo,
    TenantSettings,
    Vote,
    utcnow,
)
from quizpoll_pipeline.normalizers.groups import split_group_key

console = Console()

# Fields refreshed when a sync re-observes an event
MUTABLE_EVENT_FIELDS = (
    "title",
    "instant",
    "venue",
    "address",
    "price",
    "difficulty",
    "status",
    "url",
    "group_key",
    "type_name",
    "number",
    "source_url",
)


def _number_sort_key(number: str) -> tuple[int, str]:
    return (int(number), "") if number.isdigit() else (10**9, number)


class JsonCatalogStore:
    """Catalog store persisted to a JSON file (in memory when path is None)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._events: dict[tuple[str, str], Event] = {}
        self._tenants: dict[str, TenantSettings] = {}
        self._teams: dict[str, TeamInfo] = {}
        self._polls: dict[str, Poll] = {}
        self._votes: dict[tuple[str, int], Vote] = {}
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Load catalog from disk."""
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            for item in data.get("events", []):
                event = Event.model_validate(item)
                self._events[(event.tenant_id, event.external_id)] = event
            for item in data.get("tenants", []):
                settings = TenantSettings.model_validate(item)
                self._tenants[settings.tenant_id] = settings
            for tenant_id, item in data.get("teams", {}).items():
                self._teams[tenant_id] = TeamInfo.model_validate(item)
            for item in data.get("polls", []):
                poll = Poll.model_validate(item)
                self._polls[poll.poll_id] = poll
            for item in data.get("votes", []):
                vote = Vote.model_validate(item)
                self._votes[(vote.poll_id, vote.user_id)] = vote
        except (OSError, ValueError, ValidationError) as e:
            raise StoreFailure(f"Failed to load catalog from {self.path}: {e}") from e
        console.print(f"[dim]Loaded {len(self._events)} events, {len(self._polls)} polls from store[/dim]")

    def _save(self) -> None:
        """Save catalog to disk."""
        if not self.path:
            return
        document = {
            "updated_at": utcnow().isoformat(),
            "events": [e.model_dump(mode="json") for e in self._events.values()],
            "tenants": [t.model_dump(mode="json") for t in self._tenants.values()],
            "teams": {k: v.model_dump(mode="json") for k, v in self._teams.items()},
            "polls": [p.model_dump(mode="json") for p in self._polls.values()],
            "votes": [v.model_dump(mode="json") for v in self._votes.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            self._restore()
            raise StoreFailure(f"Failed to save catalog to {self.path}: {e}") from e

    def _restore(self) -> None:
        """Drop unsaved changes by reloading the last written catalog."""
        self._events.clear()
        self._tenants.clear()
        self._teams.clear()
        self._polls.clear()
        self._votes.clear()
        self._load()

    def _tenant(self, tenant_id: str) -> TenantSettings:
        if tenant_id not in self._tenants:
            self._tenants[tenant_id] = TenantSettings(tenant_id=tenant_id)
        return self._tenants[tenant_id]

    def _tenant_events(self, tenant_id: str) -> list[Event]:
        return [e for (t, _), e in self._events.items() if t == tenant_id]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def upsert_event(self, event: Event) -> bool:
        """Insert or merge by (tenant_id, external_id).

        Returns True when the row was inserted. A snapshot older than the
        stored row's last_seen never overwrites it. first_seen and the
        registered/excluded flags survive a refresh.
        """
        key = (event.tenant_id, event.external_id)
        existing = self._events.get(key)
        settings = self._tenant(event.tenant_id)

        if existing is None:
            stored = event.model_copy()
            stored.excluded = stored.excluded or event.group_key in settings.excluded_groups
            self._events[key] = stored
            self._save()
            return True

        if event.last_seen < existing.last_seen:
            return False

        updates = {field: getattr(event, field) for field in MUTABLE_EVENT_FIELDS}
        updates["last_seen"] = event.last_seen
        updates["last_updated"] = event.last_seen
        if event.group_key in settings.excluded_groups:
            updates["excluded"] = True
        self._events[key] = existing.model_copy(update=updates)
        self._save()
        return False

    async def get_event(self, tenant_id: str, external_id: str) -> Optional[Event]:
        return self._events.get((tenant_id, external_id))

    def _visible(
        self, event: Event, settings: TenantSettings, filters: EventFilters, now: datetime
    ) -> bool:
        if event.instant < now:
            return False
        if filters.days_ahead is not None and event.instant > now + timedelta(days=filters.days_ahead):
            return False
        if not filters.include_excluded:
            excluded_types = {t.lower() for t in settings.excluded_types}
            if event.excluded or event.group_key in settings.excluded_groups:
                return False
            if event.type_name.lower() in excluded_types:
                return False
        return True

    async def query_upcoming(
        self,
        tenant_id: str,
        filters: Optional[EventFilters] = None,
        now: Optional[datetime] = None,
    ) -> list[Event]:
        """Future events, ordered by package then time."""
        filters = filters or EventFilters()
        now = now or utcnow()
        settings = self._tenant(tenant_id)
        events = [
            e for e in self._tenant_events(tenant_id)
            if self._visible(e, settings, filters, now)
            and (filters.include_played or e.group_key not in settings.played_groups)
        ]
        events.sort(key=lambda e: (e.group_key, e.instant))
        return events

    async def query_groups(
        self,
        tenant_id: str,
        filters: Optional[EventFilters] = None,
        now: Optional[datetime] = None,
    ) -> list[EventGroup]:
        """Packages of future events with flags derived fresh from polls and settings."""
        filters = filters or EventFilters()
        now = now or utcnow()
        settings = self._tenant(tenant_id)

        by_key: dict[str, list[Event]] = defaultdict(list)
        for event in self._tenant_events(tenant_id):
            if self._visible(event, settings, filters, now):
                by_key[event.group_key].append(event)

        tenant_polls = [p for p in self._polls.values() if p.tenant_id == tenant_id]
        package_polled = {p.group_key for p in tenant_polls if p.group_key}
        date_polled_ids = {
            o.external_id
            for p in tenant_polls if p.group_key is None
            for o in p.options if not o.is_unavailable
        }

        groups = []
        for group_key, events in by_key.items():
            played = group_key in settings.played_groups
            if played and not filters.include_played:
                continue
            type_name, number = split_group_key(group_key)
            events.sort(key=lambda e: e.instant)
            groups.append(EventGroup(
                group_key=group_key,
                type_name=type_name,
                number=number,
                events=events,
                played=played,
                registered_count=sum(1 for e in events if e.registered),
                polled_by_package=group_key in package_polled,
                polled_by_date=any(e.external_id in date_polled_ids for e in events),
            ))

        groups.sort(key=lambda g: (g.type_name, _number_sort_key(g.number)))
        return groups

    async def prune_expired(self, tenant_id: str, now: Optional[datetime] = None) -> int:
        """Delete events whose instant is in the past."""
        now = now or utcnow()
        expired = [k for k, e in self._events.items() if k[0] == tenant_id and e.instant < now]
        for key in expired:
            del self._events[key]
        if expired:
            self._save()
        return len(expired)

    # ------------------------------------------------------------------
    # Exclusions and played marks
    # ------------------------------------------------------------------

    async def exclude_type(self, tenant_id: str, type_name: str) -> None:
        settings = self._tenant(tenant_id)
        if type_name not in settings.excluded_types:
            settings.excluded_types.append(type_name)
            settings.excluded_types.sort()
            self._save()

    async def include_type(self, tenant_id: str, type_name: str) -> None:
        settings = self._tenant(tenant_id)
        if type_name in settings.excluded_types:
            settings.excluded_types.remove(type_name)
            self._save()

    async def list_excluded_types(self, tenant_id: str) -> list[str]:
        return list(self._tenant(tenant_id).excluded_types)

    async def exclude_group(self, tenant_id: str, group_key: str) -> None:
        settings = self._tenant(tenant_id)
        if group_key not in settings.excluded_groups:
            settings.excluded_groups.append(group_key)
        self._set_group_excluded(tenant_id, group_key, True)
        self._save()

    async def include_group(self, tenant_id: str, group_key: str) -> None:
        settings = self._tenant(tenant_id)
        if group_key in settings.excluded_groups:
            settings.excluded_groups.remove(group_key)
        self._set_group_excluded(tenant_id, group_key, False)
        self._save()

    def _set_group_excluded(self, tenant_id: str, group_key: str, excluded: bool) -> None:
        now = utcnow()
        for key, event in self._events.items():
            if key[0] == tenant_id and event.group_key == group_key:
                self._events[key] = event.model_copy(update={"excluded": excluded, "last_updated": now})

    async def list_excluded_groups(self, tenant_id: str) -> list[str]:
        return list(self._tenant(tenant_id).excluded_groups)

    async def mark_group_played(self, tenant_id: str, group_key: str) -> None:
        settings = self._tenant(tenant_id)
        if group_key not in settings.played_groups:
            settings.played_groups.append(group_key)
            self._save()

    async def unmark_group_played(self, tenant_id: str, group_key: str) -> None:
        settings = self._tenant(tenant_id)
        if group_key in settings.played_groups:
            settings.played_groups.remove(group_key)
            self._save()

    # ------------------------------------------------------------------
    # Tenant settings
    # ------------------------------------------------------------------

    async def get_settings(self, tenant_id: str) -> TenantSettings:
        return self._tenant(tenant_id).model_copy(deep=True)

    async def set_source_url(self, tenant_id: str, url: str) -> None:
        self._tenant(tenant_id).source_url = url
        self._save()

    async def set_pending_source_url(self, tenant_id: str, url: Optional[str]) -> None:
        self._tenant(tenant_id).pending_source_url = url
        self._save()

    async def mark_synced(self, tenant_id: str, at: Optional[datetime] = None) -> None:
        self._tenant(tenant_id).last_sync_at = at or utcnow()
        self._save()

    def _drop_tenant_catalog(self, tenant_id: str) -> None:
        for key in [k for k in self._events if k[0] == tenant_id]:
            del self._events[key]
        poll_ids = {pid for pid, p in self._polls.items() if p.tenant_id == tenant_id}
        for poll_id in poll_ids:
            del self._polls[poll_id]
        for key in [k for k in self._votes if k[0] in poll_ids]:
            del self._votes[key]

    async def change_source_url(self, tenant_id: str, url: str) -> None:
        """Switch source: drop catalog, polls, exclusions and sync state; keep team info."""
        self._drop_tenant_catalog(tenant_id)
        self._tenants[tenant_id] = TenantSettings(tenant_id=tenant_id, source_url=url)
        self._save()

    async def reset_tenant(self, tenant_id: str) -> None:
        """Delete everything stored for the tenant."""
        self._drop_tenant_catalog(tenant_id)
        self._tenants.pop(tenant_id, None)
        self._teams.pop(tenant_id, None)
        self._save()

    async def list_tenant_sources(self) -> list[TenantSettings]:
        return [t.model_copy(deep=True) for t in self._tenants.values() if t.source_url]

    # ------------------------------------------------------------------
    # Polls and votes
    # ------------------------------------------------------------------

    async def insert_poll(self, poll: Poll) -> None:
        if poll.poll_id in self._polls:
            return
        self._polls[poll.poll_id] = poll.model_copy(deep=True)
        self._save()

    async def add_poll_options(self, poll_id: str, options: list[PollOption]) -> None:
        """Attach options; existing option ids are never replaced."""
        poll = self._polls.get(poll_id)
        if poll is None:
            raise StoreFailure(f"Unknown poll {poll_id}")
        known = {o.option_id for o in poll.options}
        new = [o for o in options if o.option_id not in known]
        if new:
            poll.options = sorted(poll.options + new, key=lambda o: o.option_id)
            self._save()

    async def get_poll(self, poll_id: str) -> Optional[Poll]:
        poll = self._polls.get(poll_id)
        return poll.model_copy(deep=True) if poll else None

    async def poll_exists(self, poll_id: str) -> bool:
        return poll_id in self._polls

    async def list_unprocessed_polls(self, tenant_id: str) -> list[PollSummary]:
        """Unprocessed polls with at least one voter, newest first."""
        voters: dict[str, set[int]] = defaultdict(set)
        for (poll_id, user_id), vote in self._votes.items():
            if vote.option_ids:
                voters[poll_id].add(user_id)

        summaries = [
            PollSummary(poll=p.model_copy(deep=True), vote_count=len(voters[p.poll_id]))
            for p in self._polls.values()
            if p.tenant_id == tenant_id and not p.processed_for_registration and voters[p.poll_id]
        ]
        summaries.sort(key=lambda s: s.poll.created_at, reverse=True)
        return summaries

    async def mark_poll_processed(self, poll_id: str) -> None:
        poll = self._polls.get(poll_id)
        if poll and not poll.processed_for_registration:
            poll.processed_for_registration = True
            self._save()

    async def upsert_vote(self, vote: Vote) -> None:
        """Last write wins: a new ballot replaces the user's previous one."""
        self._votes[(vote.poll_id, vote.user_id)] = vote.model_copy(deep=True)
        self._save()

    async def list_votes(self, poll_id: str) -> list[Vote]:
        return [v.model_copy(deep=True) for (pid, _), v in self._votes.items() if pid == poll_id]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def mark_registered(
        self, tenant_id: str, external_id: str, at: Optional[datetime] = None
    ) -> None:
        """Mark one event registered; other dates of the same package are unmarked."""
        event = self._events.get((tenant_id, external_id))
        if event is None:
            raise StoreFailure(f"Unknown event {external_id} for tenant {tenant_id}")
        at = at or utcnow()
        for key, other in self._events.items():
            if key[0] == tenant_id and other.group_key == event.group_key and other.registered:
                self._events[key] = other.model_copy(update={"registered": False, "registered_at": None})
        self._events[(tenant_id, external_id)] = self._events[(tenant_id, external_id)].model_copy(
            update={"registered": True, "registered_at": at}
        )
        self._save()

    async def unmark_registered(self, tenant_id: str, external_id: str) -> None:
        event = self._events.get((tenant_id, external_id))
        if event is None:
            return
        self._events[(tenant_id, external_id)] = event.model_copy(
            update={"registered": False, "registered_at": None}
        )
        self._save()

    # ------------------------------------------------------------------
    # Team info
    # ------------------------------------------------------------------

    async def get_team_info(self, tenant_id: str) -> Optional[TeamInfo]:
        info = self._teams.get(tenant_id)
        return info.model_copy() if info else None

    async def save_team_info(self, tenant_id: str, info: TeamInfo) -> None:
        self._teams[tenant_id] = info.model_copy()
        self._save()

    async def delete_team_info(self, tenant_id: str) -> None:
        if self._teams.pop(tenant_id, None) is not None:
            self._save()
