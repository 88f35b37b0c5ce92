"""Send poll specs through the messaging provider and record ballots."""

from typing import Protocol

from rich.console import Console

from quizpoll_pipeline.models import BallotAnswer, Poll, PollOption, PollSpec, SentPoll, Vote
from quizpoll_pipeline.store.base import CatalogStore

console = Console()


class Messenger(Protocol):
    """Messaging provider: sends a multi-select, non-anonymous poll."""

    async def send_poll(self, tenant_id: str, question: str, options: list[str]) -> SentPoll: ...


def options_for(poll_id: str, spec: PollSpec) -> list[PollOption]:
    """Option rows in the order they were sent."""
    return [
        PollOption.unavailable(poll_id, index)
        if choice.is_unavailable
        else PollOption.event(poll_id, index, choice.external_id)
        for index, choice in enumerate(spec.options)
    ]


async def publish_polls(
    messenger: Messenger,
    store: CatalogStore,
    tenant_id: str,
    specs: list[PollSpec],
) -> list[Poll]:
    """Send each PollSpec and persist the poll with its options."""
    published = []
    for spec in specs:
        sent = await messenger.send_poll(tenant_id, spec.title, [c.label for c in spec.options])
        poll = Poll(
            poll_id=sent.poll_id,
            tenant_id=tenant_id,
            message_id=sent.message_id,
            group_key=spec.group_key,
            title=spec.title,
        )
        await store.insert_poll(poll)
        await store.add_poll_options(poll.poll_id, options_for(poll.poll_id, spec))
        console.print(f"[green]Poll sent:[/green] {spec.title} [dim]({len(spec.options)} options)[/dim]")
        published.append(await store.get_poll(poll.poll_id))
    return published


async def record_ballot(store: CatalogStore, answer: BallotAnswer) -> bool:
    """Store a ballot, replacing the voter's previous one.

    Returns False when the poll is unknown and the ballot was ignored.
    """
    if not await store.poll_exists(answer.poll_id):
        console.print(f"[yellow]Vote for unknown poll {answer.poll_id}, ignoring[/yellow]")
        return False
    await store.upsert_vote(Vote(
        poll_id=answer.poll_id,
        user_id=answer.user_id,
        display_name=answer.display_name,
        option_ids=list(answer.option_ids),
    ))
    return True
