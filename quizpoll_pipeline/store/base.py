"""Catalog store contract consumed by the pipeline."""

from datetime import datetime
from typing import Optional, Protocol

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
)


class CatalogStore(Protocol):
    """Async read/write surface over the per-tenant catalog.

    Every row is scoped by tenant id; writes for one tenant never touch
    another tenant's rows.
    """

    # Events
    async def upsert_event(self, event: Event) -> bool: ...
    async def get_event(self, tenant_id: str, external_id: str) -> Optional[Event]: ...
    async def query_upcoming(
        self, tenant_id: str, filters: Optional[EventFilters] = None, now: Optional[datetime] = None
    ) -> list[Event]: ...
    async def query_groups(
        self, tenant_id: str, filters: Optional[EventFilters] = None, now: Optional[datetime] = None
    ) -> list[EventGroup]: ...
    async def prune_expired(self, tenant_id: str, now: Optional[datetime] = None) -> int: ...

    # Exclusions and played marks
    async def exclude_type(self, tenant_id: str, type_name: str) -> None: ...
    async def include_type(self, tenant_id: str, type_name: str) -> None: ...
    async def list_excluded_types(self, tenant_id: str) -> list[str]: ...
    async def exclude_group(self, tenant_id: str, group_key: str) -> None: ...
    async def include_group(self, tenant_id: str, group_key: str) -> None: ...
    async def list_excluded_groups(self, tenant_id: str) -> list[str]: ...
    async def mark_group_played(self, tenant_id: str, group_key: str) -> None: ...
    async def unmark_group_played(self, tenant_id: str, group_key: str) -> None: ...

    # Tenant settings
    async def get_settings(self, tenant_id: str) -> TenantSettings: ...
    async def set_source_url(self, tenant_id: str, url: str) -> None: ...
    async def set_pending_source_url(self, tenant_id: str, url: Optional[str]) -> None: ...
    async def mark_synced(self, tenant_id: str, at: Optional[datetime] = None) -> None: ...
    async def change_source_url(self, tenant_id: str, url: str) -> None: ...
    async def reset_tenant(self, tenant_id: str) -> None: ...
    async def list_tenant_sources(self) -> list[TenantSettings]: ...

    # Polls and votes
    async def insert_poll(self, poll: Poll) -> None: ...
    async def add_poll_options(self, poll_id: str, options: list[PollOption]) -> None: ...
    async def get_poll(self, poll_id: str) -> Optional[Poll]: ...
    async def poll_exists(self, poll_id: str) -> bool: ...
    async def list_unprocessed_polls(self, tenant_id: str) -> list[PollSummary]: ...
    async def mark_poll_processed(self, poll_id: str) -> None: ...
    async def upsert_vote(self, vote: Vote) -> None: ...
    async def list_votes(self, poll_id: str) -> list[Vote]: ...

    # Registration
    async def mark_registered(
        self, tenant_id: str, external_id: str, at: Optional[datetime] = None
    ) -> None: ...
    async def unmark_registered(self, tenant_id: str, external_id: str) -> None: ...

    # Team info
    async def get_team_info(self, tenant_id: str) -> Optional[TeamInfo]: ...
    async def save_team_info(self, tenant_id: str, info: TeamInfo) -> None: ...
    async def delete_team_info(self, tenant_id: str) -> None: ...
