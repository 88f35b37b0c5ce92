"""One tenant's catalog refresh: extract, normalize, filter, upsert."""

import json
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console

from quizpoll_pipeline.config import DEFAULT_API_URL
from quizpoll_pipeline.extractors.api import build_api_page_url, city_code_from_url, extract_api_page
from quizpoll_pipeline.extractors.fetch import ResilientFetcher
from quizpoll_pipeline.extractors.markup import discover_max_page, extract_markup, page_url
from quizpoll_pipeline.models import RawEvent, SyncStats, utcnow
from quizpoll_pipeline.normalizers.dates import DEFAULT_UTC_OFFSET_HOURS
from quizpoll_pipeline.normalizers.event import normalize_event
from quizpoll_pipeline.store.base import CatalogStore

console = Console()

MAX_PAGINATION_PAGES = 20


def take_unseen(items: list[RawEvent], seen: set[str]) -> list[RawEvent]:
    """Records whose external id was not seen earlier in this run (updates seen)."""
    fresh = []
    for item in items:
        if item.external_id in seen:
            continue
        seen.add(item.external_id)
        fresh.append(item)
    return fresh


class SyncOrchestrator:
    """Refresh one tenant's catalog from its source URL.

    The JSON API is tried first when the source maps to a known city; the
    markup pages are used when the API is inapplicable or yields nothing.
    Sync never deletes rows, see ``prune``.
    """

    def __init__(
        self,
        store: CatalogStore,
        markup_fetcher: ResilientFetcher,
        api_fetcher: Optional[ResilientFetcher] = None,
        clock: Callable[[], datetime] = utcnow,
        max_pages: int = MAX_PAGINATION_PAGES,
        api_url: str = DEFAULT_API_URL,
        offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
    ):
        self.store = store
        self.markup_fetcher = markup_fetcher
        self.api_fetcher = api_fetcher
        self.clock = clock
        self.max_pages = max_pages
        self.api_url = api_url
        self.offset_hours = offset_hours

    async def collect_api(self, source_url: str, city_code: int) -> list[RawEvent]:
        """Page through the schedule API. Any fetch or decode failure ends the walk."""
        collected: list[RawEvent] = []
        seen: set[str] = set()
        total_pages = 1
        page = 1

        while page <= min(total_pages, self.max_pages):
            url = build_api_page_url(self.api_url, city_code, page)
            result = await self.api_fetcher.fetch(url)
            if not result.ok:
                console.print(f"[yellow]API page {page} unavailable: {result.error_reason}[/yellow]")
                break
            try:
                payload = json.loads(result.content)
            except ValueError:
                console.print(f"[yellow]API page {page} is not JSON[/yellow]")
                break

            decoded = extract_api_page(payload, source_url)
            if page == 1:
                total_pages = decoded.total_pages
            fresh = take_unseen(decoded.events, seen)
            console.print(f"[dim]API page {page}/{total_pages}: {len(fresh)} new of {decoded.received}[/dim]")
            if not fresh:
                break
            collected.extend(fresh)
            page += 1

        return collected

    async def collect_markup(self, source_url: str) -> list[RawEvent]:
        """Fetch schedule pages sequentially.

        The first page must load (raises FetchFailure otherwise). Later pages
        stop the walk when they fail or bring no unseen records.
        """
        first_url = page_url(source_url, 1)
        first_html = (await self.markup_fetcher.fetch(first_url)).unwrap()

        max_page = min(discover_max_page(first_html), self.max_pages)
        seen: set[str] = set()
        collected = take_unseen(extract_markup(first_html, first_url), seen)
        console.print(f"[dim]Page 1/{max_page}: {len(collected)} records[/dim]")

        for page in range(2, max_page + 1):
            url = page_url(source_url, page)
            result = await self.markup_fetcher.fetch(url)
            if not result.ok:
                console.print(f"[yellow]Page {page} unavailable ({result.error_reason}), stopping[/yellow]")
                break
            fresh = take_unseen(extract_markup(result.content, url), seen)
            console.print(f"[dim]Page {page}/{max_page}: {len(fresh)} new records[/dim]")
            if not fresh:
                break
            collected.extend(fresh)

        return collected

    async def collect(self, source_url: str) -> list[RawEvent]:
        """Run the extractor chain for a source URL."""
        city_code = city_code_from_url(source_url)
        if city_code is not None and self.api_fetcher is not None:
            items = await self.collect_api(source_url, city_code)
            if items:
                console.print(f"[green]API returned {len(items)} records[/green]")
                return items
            console.print("[yellow]API yielded nothing, falling back to markup[/yellow]")
        return await self.collect_markup(source_url)

    async def sync(self, tenant_id: str, source_url: str) -> SyncStats:
        """Refresh the tenant's catalog.

        Args:
            tenant_id: Tenant whose catalog is refreshed
            source_url: Schedule page of the tenant's city

        Returns:
            SyncStats with upserted, unparseable and excluded counts
        """
        console.print(f"[cyan]Syncing {tenant_id} from {source_url}[/cyan]")
        raw_events = await self.collect(source_url)

        settings = await self.store.get_settings(tenant_id)
        excluded_types = {t.lower() for t in settings.excluded_types}
        excluded_groups = set(settings.excluded_groups)

        now = self.clock()
        stats = SyncStats()
        for raw in raw_events:
            event = normalize_event(raw, tenant_id, source_url, now=now, offset_hours=self.offset_hours)
            if event is None:
                stats.skipped += 1
                continue
            if event.type_name.lower() in excluded_types or event.group_key in excluded_groups:
                stats.excluded += 1
                continue
            await self.store.upsert_event(event)
            stats.added += 1

        await self.store.mark_synced(tenant_id, now)
        console.print(
            f"[green]Synced {tenant_id}:[/green] {stats.added} upserted, "
            f"{stats.excluded} excluded, {stats.skipped} skipped"
        )
        return stats

    async def prune(self, tenant_id: str) -> int:
        """Delete the tenant's events that already took place."""
        removed = await self.store.prune_expired(tenant_id, self.clock())
        if removed:
            console.print(f"[dim]Pruned {removed} past events for {tenant_id}[/dim]")
        return removed
