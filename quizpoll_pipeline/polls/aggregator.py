"""Vote tallies and winner selection."""

from collections import defaultdict

from quizpoll_pipeline.models import OptionTally
from quizpoll_pipeline.store.base import CatalogStore

DEFAULT_MIN_VOTES = 2


async def tally(store: CatalogStore, poll_id: str) -> list[OptionTally]:
    """Distinct voters per option, from each user's latest ballot.

    Options with no votes are included. Sorted by vote count (desc), then
    option id.
    """
    poll = await store.get_poll(poll_id)
    if poll is None:
        return []

    voters: dict[int, dict[int, str]] = defaultdict(dict)
    for vote in await store.list_votes(poll_id):
        for option_id in set(vote.option_ids):
            voters[option_id][vote.user_id] = vote.display_name

    tallies = [
        OptionTally(
            option=option,
            vote_count=len(voters[option.option_id]),
            voters=sorted(voters[option.option_id].values()),
        )
        for option in poll.options
    ]
    tallies.sort(key=lambda t: (-t.vote_count, t.option_id))
    return tallies


def winners(tallies: list[OptionTally], min_votes: int = DEFAULT_MIN_VOTES) -> list[OptionTally]:
    """Every real option tied at the top count, if that count reaches min_votes.

    The unavailable option never wins. Ties are not broken.
    """
    candidates = [t for t in tallies if not t.option.is_unavailable]
    if not candidates:
        return []
    top = max(t.vote_count for t in candidates)
    if top < max(min_votes, 1):
        return []
    return sorted((t for t in candidates if t.vote_count == top), key=lambda t: t.option_id)
