"""Data models for the schedule pipeline."""

from quizpoll_pipeline.models.event import (
    Event,
    EventFilters,
    EventGroup,
    RawEvent,
    SyncStats,
    utcnow,
)
from quizpoll_pipeline.models.poll import (
    UNAVAILABLE_LABEL,
    BallotAnswer,
    OptionTally,
    Poll,
    PollChoice,
    PollOption,
    PollSpec,
    PollSummary,
    SentPoll,
    Vote,
)
from quizpoll_pipeline.models.tenant import TeamInfo, TenantSettings

__all__ = [
    "Event",
    "EventFilters",
    "EventGroup",
    "RawEvent",
    "SyncStats",
    "utcnow",
    "UNAVAILABLE_LABEL",
    "BallotAnswer",
    "OptionTally",
    "Poll",
    "PollChoice",
    "PollOption",
    "PollSpec",
    "PollSummary",
    "SentPoll",
    "Vote",
    "TeamInfo",
    "TenantSettings",
]
