"""Registration selection flow.

    NO_SELECTION -> POLLS_CHOSEN -> GAMES_CHOSEN -> SUBMITTING -> DONE

Polls are toggled into a selection, their winners computed, winning events
toggled, then submitted one by one. State is per tenant and is cleared on
completion, cancellation or a failed run.
"""

from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field
from rich.console import Console

from quizpoll_pipeline.errors import RegistrationFailure, SelectionError
from quizpoll_pipeline.models import PollSummary, utcnow
from quizpoll_pipeline.polls.aggregator import DEFAULT_MIN_VOTES, tally, winners
from quizpoll_pipeline.registration.state import Selection, SelectionStore, SelectorState, WinningEvent
from quizpoll_pipeline.registration.submitter import RegistrationSubmitter
from quizpoll_pipeline.store.base import CatalogStore

console = Console()

DEFAULT_PLAYER_COUNT = 2


class RegistrationOutcome(BaseModel):
    external_id: str
    title: str
    success: bool
    error: Optional[str] = None


class RegistrationReport(BaseModel):
    """Per-event results of one submission."""

    registered: int = 0
    failed: int = 0
    outcomes: list[RegistrationOutcome] = Field(default_factory=list)
    processed_polls: list[str] = Field(default_factory=list)


class RegistrationSelector:
    """Drive one tenant at a time through the registration flow."""

    def __init__(
        self,
        store: CatalogStore,
        submitter: RegistrationSubmitter,
        selections: Optional[SelectionStore] = None,
        min_votes: int = DEFAULT_MIN_VOTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.submitter = submitter
        self.selections = selections or SelectionStore(clock=clock)
        self.min_votes = min_votes
        self.clock = clock

    def state(self, tenant_id: str) -> SelectorState:
        return self.selections.get(tenant_id).state

    def selection(self, tenant_id: str) -> Selection:
        return self.selections.get(tenant_id)

    def _require(self, selection: Selection, *allowed: SelectorState) -> None:
        if selection.state not in allowed:
            names = ", ".join(s.name for s in allowed)
            raise SelectionError(f"Not allowed in state {selection.state.name} (expected {names})")

    async def candidate_polls(self, tenant_id: str) -> list[PollSummary]:
        """Unprocessed polls that have at least one voter, newest first."""
        return await self.store.list_unprocessed_polls(tenant_id)

    async def toggle_poll(self, tenant_id: str, poll_id: str) -> SelectorState:
        """Add or remove a poll. Only the tenant's own unprocessed polls can be added."""
        selection = self.selections.get(tenant_id)
        self._require(selection, SelectorState.NO_SELECTION, SelectorState.POLLS_CHOSEN)

        if poll_id in selection.poll_ids:
            selection.poll_ids.remove(poll_id)
        else:
            poll = await self.store.get_poll(poll_id)
            if poll is None or poll.tenant_id != tenant_id:
                raise SelectionError(f"Unknown poll {poll_id}")
            if poll.processed_for_registration:
                raise SelectionError(f"Poll {poll_id} was already processed")
            selection.poll_ids.append(poll_id)

        if selection.poll_ids:
            selection.state = SelectorState.POLLS_CHOSEN
            self.selections.save(tenant_id, selection)
        else:
            self.selections.clear(tenant_id)
            selection.state = SelectorState.NO_SELECTION
        return selection.state

    async def confirm_polls(self, tenant_id: str) -> list[WinningEvent]:
        """Compute the winning events of exactly the selected polls.

        Events already past or already registered are left out. When an event
        wins several selected polls, its highest vote count is kept.
        """
        selection = self.selections.get(tenant_id)
        self._require(selection, SelectorState.POLLS_CHOSEN)
        if not selection.poll_ids:
            raise SelectionError("No polls selected")

        now = self.clock()
        found: dict[str, WinningEvent] = {}
        for poll_id in selection.poll_ids:
            for winner in winners(await tally(self.store, poll_id), self.min_votes):
                event = await self.store.get_event(tenant_id, winner.external_id)
                if event is None or event.is_past(now) or event.registered:
                    continue
                previous = found.get(event.external_id)
                if previous is None or winner.vote_count > previous.vote_count:
                    found[event.external_id] = WinningEvent(
                        event=event,
                        poll_id=poll_id,
                        vote_count=winner.vote_count,
                        voters=winner.voters,
                    )

        selection.winners = dict(sorted(found.items(), key=lambda item: item[1].event.instant))
        selection.event_ids = []
        selection.state = SelectorState.GAMES_CHOSEN
        self.selections.save(tenant_id, selection)
        console.print(f"[dim]{len(found)} winning events across {len(selection.poll_ids)} polls[/dim]")
        return list(selection.winners.values())

    def toggle_event(self, tenant_id: str, external_id: str) -> list[str]:
        selection = self.selections.get(tenant_id)
        self._require(selection, SelectorState.GAMES_CHOSEN)
        if external_id not in selection.winners:
            raise SelectionError(f"Event {external_id} is not among the winners")

        if external_id in selection.event_ids:
            selection.event_ids.remove(external_id)
        else:
            selection.event_ids.append(external_id)
        self.selections.save(tenant_id, selection)
        return list(selection.event_ids)

    async def submit(self, tenant_id: str) -> RegistrationReport:
        """Register the team for every selected event.

        Every selected poll is marked processed whatever the per-event
        outcome. Raises SelectionError, keeping the selection, when nothing
        is selected or the team info is incomplete.
        """
        selection = self.selections.get(tenant_id)
        self._require(selection, SelectorState.GAMES_CHOSEN)
        if not selection.event_ids:
            raise SelectionError("No events selected")
        team = await self.store.get_team_info(tenant_id)
        if team is None or not team.is_complete:
            raise SelectionError("Team info is incomplete")

        selection.state = SelectorState.SUBMITTING
        self.selections.save(tenant_id, selection)

        report = RegistrationReport()
        chosen = sorted(
            (selection.winners[eid] for eid in selection.event_ids),
            key=lambda w: w.event.instant,
        )
        try:
            for winner in chosen:
                event = winner.event
                player_count = winner.vote_count if winner.vote_count > 0 else DEFAULT_PLAYER_COUNT
                try:
                    result = await self.submitter.submit(event.url, team, player_count)
                    if not result.success:
                        raise RegistrationFailure(result.error or "registration rejected")
                except RegistrationFailure as e:
                    report.failed += 1
                    report.outcomes.append(RegistrationOutcome(
                        external_id=event.external_id, title=event.title, success=False, error=str(e),
                    ))
                    continue

                await self.store.mark_registered(tenant_id, event.external_id, self.clock())
                report.registered += 1
                report.outcomes.append(RegistrationOutcome(
                    external_id=event.external_id, title=event.title, success=True,
                ))
        finally:
            for poll_id in selection.poll_ids:
                await self.store.mark_poll_processed(poll_id)
            report.processed_polls = list(selection.poll_ids)
            self.selections.clear(tenant_id)

        selection.state = SelectorState.DONE
        console.print(
            f"[green]Registration done for {tenant_id}:[/green] "
            f"{report.registered} registered, {report.failed} failed"
        )
        return report

    def cancel(self, tenant_id: str) -> None:
        self.selections.clear(tenant_id)
