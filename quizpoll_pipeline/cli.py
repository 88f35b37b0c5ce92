"""CLI for the quiz schedule pipeline."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from quizpoll_pipeline.config import get_settings
from quizpoll_pipeline.errors import QuizPollError
from quizpoll_pipeline.models import EventFilters, TeamInfo, utcnow
from quizpoll_pipeline.pipeline import (
    build_orchestrator,
    build_queue,
    build_selector,
    open_store,
    print_groups,
    print_poll_plan,
    print_registration_report,
    print_sync_stats,
    print_tally,
    print_upcoming,
    print_winners,
    resolve_source_url,
    sync_all,
)
from quizpoll_pipeline.polls import build_package_polls, build_window_polls, tally, winners
from quizpoll_pipeline.polls.builder import window_for_days

app = typer.Typer(
    name="quizpoll",
    help="Quiz schedule sync, poll planning and vote tallies",
    add_completion=False,
)
console = Console()


def run(coro):
    """Run a coroutine, turning pipeline errors into a red message and exit 1."""
    try:
        return asyncio.run(coro)
    except QuizPollError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


async def with_store(settings, action):
    """Open the store inside the event loop so load errors are reported too."""
    return await action(open_store(settings))


@app.command()
def sync(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    url: str = typer.Option(None, "--url", "-u", help="Source URL (saved when the tenant has none)"),
):
    """Sync one tenant's catalog from its source URL."""
    settings = get_settings()

    async def go():
        store = open_store(settings)
        source_url = await resolve_source_url(store, tenant, url)
        queue = build_queue(settings, store)
        return {tenant: await queue.enqueue(tenant, source_url)}

    print_sync_stats(run(go()))


@app.command("sync-all")
def sync_all_tenants():
    """Sync every tenant that has a source URL."""
    settings = get_settings()

    async def go():
        return await sync_all(settings, open_store(settings))

    results = run(go())
    if results:
        print_sync_stats(results)


@app.command()
def prune(tenant: str = typer.Argument(..., help="Tenant (chat) id")):
    """Delete events that already took place."""
    settings = get_settings()

    async def go():
        store = open_store(settings)
        return await build_orchestrator(settings, store).prune(tenant)

    removed = run(go())
    console.print(f"[green]Removed {removed} past events[/green]")


@app.command()
def groups(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Only events within N days"),
    include_played: bool = typer.Option(False, "--include-played", help="Show played packages"),
    include_excluded: bool = typer.Option(False, "--include-excluded", help="Show excluded events"),
):
    """List upcoming packages."""
    settings = get_settings()
    filters = EventFilters(days_ahead=days, include_played=include_played, include_excluded=include_excluded)

    async def go():
        return await open_store(settings).query_groups(tenant, filters)

    print_groups(run(go()))


@app.command()
def upcoming(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Only events within N days"),
    limit: int = typer.Option(0, "--limit", "-l", help="Rows to show (0 = all)"),
):
    """List upcoming events."""
    settings = get_settings()

    async def go():
        return await open_store(settings).query_upcoming(tenant, EventFilters(days_ahead=days))

    print_upcoming(run(go()), settings.utc_offset_hours, limit=limit or None)


@app.command()
def exclude_type(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    type_name: str = typer.Argument(..., help="Event type name, e.g. 'Квиз, плиз'"),
):
    """Stop syncing and offering an event type."""
    settings = get_settings()
    run(with_store(settings, lambda store: store.exclude_type(tenant, type_name)))
    console.print(f"[green]Excluded type:[/green] {type_name}")


@app.command()
def include_type(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    type_name: str = typer.Argument(..., help="Event type name"),
):
    """Undo a type exclusion."""
    settings = get_settings()
    run(with_store(settings, lambda store: store.include_type(tenant, type_name)))
    console.print(f"[green]Included type:[/green] {type_name}")


@app.command()
def exclusions(tenant: str = typer.Argument(..., help="Tenant (chat) id")):
    """List excluded types and packages."""
    settings = get_settings()

    async def go():
        store = open_store(settings)
        return await store.list_excluded_types(tenant), await store.list_excluded_groups(tenant)

    types, packages = run(go())
    console.print(f"[bold]Excluded types:[/bold] {', '.join(types) or '-'}")
    console.print(f"[bold]Excluded packages:[/bold] {', '.join(packages) or '-'}")


@app.command()
def exclude_group(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    group: str = typer.Argument(..., help="Package key, e.g. 'Квиз, плиз#1212'"),
    undo: bool = typer.Option(False, "--undo", help="Include the package again"),
):
    """Hide a package from listings and polls."""
    settings = get_settings()
    if undo:
        run(with_store(settings, lambda store: store.include_group(tenant, group)))
        console.print(f"[green]Included package:[/green] {group}")
    else:
        run(with_store(settings, lambda store: store.exclude_group(tenant, group)))
        console.print(f"[green]Excluded package:[/green] {group}")


@app.command()
def played(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    group: str = typer.Argument(..., help="Package key"),
    undo: bool = typer.Option(False, "--undo", help="Clear the played mark"),
):
    """Mark a package as already played by the team."""
    settings = get_settings()
    if undo:
        run(with_store(settings, lambda store: store.unmark_group_played(tenant, group)))
        console.print(f"[green]Unmarked played:[/green] {group}")
    else:
        run(with_store(settings, lambda store: store.mark_group_played(tenant, group)))
        console.print(f"[green]Marked played:[/green] {group}")


@app.command()
def unregister(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    external_id: str = typer.Argument(..., help="Event id"),
):
    """Clear an event's registered mark."""
    settings = get_settings()
    run(with_store(settings, lambda store: store.unmark_registered(tenant, external_id)))
    console.print(f"[green]Registration mark cleared for {external_id}[/green]")


@app.command()
def set_source(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    url: str = typer.Argument(..., help="New schedule URL"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Switch a tenant to another schedule URL, wiping its catalog and polls."""
    settings = get_settings()

    async def stage():
        store = open_store(settings)
        current = (await store.get_settings(tenant)).source_url
        if current and current != url:
            await store.set_pending_source_url(tenant, url)
        return current

    current = run(stage())
    if not current:
        run(with_store(settings, lambda store: store.set_source_url(tenant, url)))
        console.print(f"[green]Source set:[/green] {url}")
        return
    if current == url:
        console.print("[dim]Source unchanged[/dim]")
        return

    accepted = confirm or typer.confirm(
        f"Switching from {current} deletes the catalog, polls and votes of {tenant}. Continue?"
    )

    async def apply(store):
        if accepted:
            await store.change_source_url(tenant, url)
        await store.set_pending_source_url(tenant, None)

    run(with_store(settings, apply))
    if accepted:
        console.print(f"[green]Source changed:[/green] {url}")
    else:
        console.print("[yellow]Source change cancelled[/yellow]")


@app.command()
def plan_polls(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    group: str = typer.Option(None, "--group", "-g", help="Package key, e.g. 'Квиз, плиз#1212'"),
    days: int = typer.Option(7, "--days", "-d", help="Date window length when no package is given"),
):
    """Show the polls that would be sent for a package or a date window."""
    settings = get_settings()
    limit = settings.poll_options_limit

    async def go():
        store = open_store(settings)
        if group:
            packages = [g for g in await store.query_groups(tenant) if g.group_key == group]
            if not packages:
                console.print(f"[yellow]No upcoming package {group}[/yellow]")
                return []
            return build_package_polls(packages[0], limit, settings.utc_offset_hours)
        events = await store.query_upcoming(tenant)
        start, end = window_for_days(days, utcnow(), settings.utc_offset_hours)
        return build_window_polls(events, start, end, limit, settings.utc_offset_hours)

    specs = run(go())
    if not specs:
        console.print("[yellow]Nothing to poll[/yellow]")
        raise typer.Exit(0)
    print_poll_plan(specs)


@app.command("tally")
def tally_votes(
    poll_id: str = typer.Argument(..., help="Poll id"),
    min_votes: int = typer.Option(None, "--min-votes", "-m", help="Winner threshold (default from settings)"),
):
    """Show vote counts and winners for a poll."""
    settings = get_settings()
    threshold = min_votes if min_votes is not None else settings.min_winner_votes

    async def go():
        return await tally(open_store(settings), poll_id)

    tallies = run(go())
    if not tallies:
        console.print(f"[yellow]Unknown poll {poll_id}[/yellow]")
        raise typer.Exit(1)
    print_tally(tallies, winners(tallies, threshold))


@app.command()
def team(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    name: str = typer.Option(None, "--name", help="Team name"),
    captain: str = typer.Option(None, "--captain", help="Captain name"),
    email: str = typer.Option(None, "--email", help="Contact email"),
    phone: str = typer.Option(None, "--phone", help="Contact phone"),
    clear: bool = typer.Option(False, "--clear", help="Delete the stored team info"),
):
    """Show or update the team info used for registration."""
    settings = get_settings()

    async def go():
        store = open_store(settings)
        if clear:
            await store.delete_team_info(tenant)
            return TeamInfo()
        info = await store.get_team_info(tenant) or TeamInfo()
        updates = {"team_name": name, "captain_name": captain, "email": email, "phone": phone}
        updates = {k: v for k, v in updates.items() if v is not None}
        if updates:
            info = info.model_copy(update=updates)
            await store.save_team_info(tenant, info)
        return info

    info = run(go())
    console.print(f"  Team: {info.team_name or '-'}")
    console.print(f"  Captain: {info.captain_name or '-'}")
    console.print(f"  Email: {info.email or '-'}")
    console.print(f"  Phone: {info.phone or '-'}")
    if not info.is_complete:
        console.print("[yellow]Team info incomplete, registration is disabled[/yellow]")


@app.command()
def register(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    polls: list[str] = typer.Option(None, "--poll", "-p", help="Poll id to count (repeatable, default: all with votes)"),
    events: list[str] = typer.Option(None, "--event", "-e", help="Winning event id to register (repeatable, default: all)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show winning events"),
):
    """Register the team for the winning events of voted polls."""
    settings = get_settings()

    async def go():
        store = open_store(settings)
        selector = build_selector(settings, store)
        poll_ids = polls or [s.poll.poll_id for s in await selector.candidate_polls(tenant)]
        if not poll_ids:
            console.print("[yellow]No polls with votes to process[/yellow]")
            return None
        for poll_id in poll_ids:
            await selector.toggle_poll(tenant, poll_id)

        found = await selector.confirm_polls(tenant)
        print_winners(found, settings.utc_offset_hours)
        if dry_run or not found:
            selector.cancel(tenant)
            return None

        for external_id in events or [w.external_id for w in found]:
            selector.toggle_event(tenant, external_id)
        return await selector.submit(tenant)

    report = run(go())
    if report:
        print_registration_report(report)


@app.command()
def reset(
    tenant: str = typer.Argument(..., help="Tenant (chat) id"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete everything stored for a tenant."""
    if not confirm:
        typer.confirm(f"Delete all data for {tenant}?", abort=True)
    settings = get_settings()
    run(with_store(settings, lambda store: store.reset_tenant(tenant)))
    console.print(f"[green]Tenant {tenant} reset[/green]")


def main():
    app()


if __name__ == "__main__":
    main()
