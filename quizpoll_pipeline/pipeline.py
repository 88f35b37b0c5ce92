"""Component wiring and console summaries."""

import asyncio
from datetime import timedelta
from typing import Optional

from rich.console import Console
from rich.table import Table

from quizpoll_pipeline.config import Settings
from quizpoll_pipeline.errors import SourceConflict
from quizpoll_pipeline.extractors.fetch import api_fetcher, markup_fetcher
from quizpoll_pipeline.models import Event, EventGroup, OptionTally, PollSpec, SyncStats
from quizpoll_pipeline.normalizers.dates import format_day_month_time
from quizpoll_pipeline.registration import (
    BrowserRegistrationSubmitter,
    RegistrationReport,
    RegistrationSelector,
    RegistrationSubmitter,
    SelectionStore,
    WinningEvent,
)
from quizpoll_pipeline.store import CatalogStore, JsonCatalogStore
from quizpoll_pipeline.sync import SyncOrchestrator, SyncQueue

console = Console()


def open_store(settings: Settings) -> JsonCatalogStore:
    return JsonCatalogStore(settings.store_path)


def build_orchestrator(settings: Settings, store: CatalogStore) -> SyncOrchestrator:
    return SyncOrchestrator(
        store,
        markup_fetcher=markup_fetcher(headless=settings.headless),
        api_fetcher=api_fetcher(),
        max_pages=settings.max_pages,
        api_url=settings.api_url,
        offset_hours=settings.utc_offset_hours,
    )


def build_queue(settings: Settings, store: CatalogStore) -> SyncQueue:
    orchestrator = build_orchestrator(settings, store)
    return SyncQueue(orchestrator.sync, max_concurrency=settings.max_concurrency)


def build_selector(
    settings: Settings,
    store: CatalogStore,
    submitter: Optional[RegistrationSubmitter] = None,
) -> RegistrationSelector:
    return RegistrationSelector(
        store,
        submitter or BrowserRegistrationSubmitter(headless=settings.headless),
        SelectionStore(ttl=timedelta(minutes=settings.selection_ttl_minutes)),
        min_votes=settings.min_winner_votes,
    )


async def resolve_source_url(store: CatalogStore, tenant_id: str, url: Optional[str] = None) -> str:
    """Source URL to sync. A first URL is saved; a different one is refused.

    Switching a tenant to another URL wipes its catalog, so it must go
    through ``change_source_url`` (the set-source command) instead.
    """
    current = (await store.get_settings(tenant_id)).source_url
    if not url:
        if not current:
            raise SourceConflict(f"No source URL for {tenant_id}, pass --url")
        return current
    if current and current != url:
        raise SourceConflict(
            f"{tenant_id} already syncs from {current}; use set-source to switch to {url}"
        )
    if not current:
        await store.set_source_url(tenant_id, url)
    return url


async def sync_all(settings: Settings, store: CatalogStore) -> dict[str, SyncStats | Exception]:
    """Sync every tenant that has a source URL.

    One tenant's failure is reported in its slot and does not stop the others.
    """
    tenants = await store.list_tenant_sources()
    if not tenants:
        console.print("[yellow]No tenants with a source URL[/yellow]")
        return {}

    console.print(f"\n[bold cyan]Syncing {len(tenants)} tenants[/bold cyan]\n")
    queue = build_queue(settings, store)
    results = await asyncio.gather(
        *(queue.enqueue(t.tenant_id, t.source_url) for t in tenants),
        return_exceptions=True,
    )
    return {t.tenant_id: r for t, r in zip(tenants, results)}


def print_sync_stats(results: dict[str, SyncStats | Exception]) -> None:
    table = Table(title="Sync results")
    table.add_column("Tenant", style="cyan")
    table.add_column("Added", style="green", justify="right")
    table.add_column("Excluded", style="yellow", justify="right")
    table.add_column("Skipped", style="magenta", justify="right")
    table.add_column("Error", style="red", max_width=40)

    for tenant_id, result in results.items():
        if isinstance(result, Exception):
            table.add_row(tenant_id, "-", "-", "-", str(result)[:40])
        else:
            table.add_row(tenant_id, str(result.added), str(result.excluded), str(result.skipped), "")

    console.print(table)


def print_groups(groups: list[EventGroup]) -> None:
    """Print packages with their poll and registration flags."""
    table = Table(title=f"Packages ({len(groups)})")
    table.add_column("Package", style="cyan", max_width=40)
    table.add_column("Dates", justify="right")
    table.add_column("Played", style="yellow")
    table.add_column("Polled", style="green")
    table.add_column("Registered", style="magenta", justify="right")

    for group in groups:
        polled = ", ".join(
            label for label, flag in (("package", group.polled_by_package), ("dates", group.polled_by_date))
            if flag
        )
        table.add_row(
            group.group_key[:40],
            str(group.count),
            "yes" if group.played else "",
            polled or "-",
            str(group.registered_count) if group.registered_count else "",
        )

    console.print(table)


def print_upcoming(events: list[Event], offset_hours: int, limit: Optional[int] = None) -> None:
    shown = events[:limit] if limit else events
    table = Table(title=f"Upcoming events (showing {len(shown)} of {len(events)})")
    table.add_column("When", style="green")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Venue", style="yellow", max_width=30)
    table.add_column("Price", justify="right")
    table.add_column("Reg", style="magenta")

    for event in shown:
        table.add_row(
            format_day_month_time(event.instant, offset_hours),
            event.title[:40],
            (event.venue or "-")[:30],
            event.price or "-",
            "✓" if event.registered else "",
        )

    console.print(table)


def print_poll_plan(specs: list[PollSpec]) -> None:
    for spec in specs:
        console.print(f"\n[bold cyan]{spec.title}[/bold cyan]")
        for index, choice in enumerate(spec.options):
            style = "dim" if choice.is_unavailable else "white"
            console.print(f"  [{style}]{index}. {choice.label}[/{style}]")


def print_tally(tallies: list[OptionTally], top: list[OptionTally]) -> None:
    winning = {t.option_id for t in top}
    table = Table(title="Votes")
    table.add_column("#", justify="right")
    table.add_column("Event", style="cyan")
    table.add_column("Votes", justify="right", style="green")
    table.add_column("Voters", max_width=40)
    table.add_column("Winner", style="bold green")

    for t in tallies:
        table.add_row(
            str(t.option_id),
            t.external_id or "(unavailable)",
            str(t.vote_count),
            ", ".join(t.voters)[:40],
            "★" if t.option_id in winning else "",
        )

    console.print(table)


def print_winners(found: list[WinningEvent], offset_hours: int) -> None:
    table = Table(title=f"Winning events ({len(found)})")
    table.add_column("ID", style="dim")
    table.add_column("When", style="green")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Votes", justify="right")

    for winner in found:
        table.add_row(
            winner.external_id,
            format_day_month_time(winner.event.instant, offset_hours),
            winner.event.title[:40],
            str(winner.vote_count),
        )

    console.print(table)


def print_registration_report(report: RegistrationReport) -> None:
    for outcome in report.outcomes:
        if outcome.success:
            console.print(f"  [green]✓[/green] {outcome.title}")
        else:
            console.print(f"  [red]✗[/red] {outcome.title} [dim]({outcome.error})[/dim]")
    console.print(
        f"\n[bold]Registered: {report.registered}, failed: {report.failed}[/bold] "
        f"[dim]({len(report.processed_polls)} polls processed)[/dim]"
    )
