"""Poll, option, vote and tally records."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from quizpoll_pipeline.models.event import utcnow

UNAVAILABLE_LABEL = "Не смогу ни в один из дней"

OptionKind = Literal["event", "unavailable"]


class PollOption(BaseModel):
    """A persisted poll option. Immutable after creation.

    Either a real event option (``kind="event"`` with ``external_id``) or the
    "can't make it" sentinel (``kind="unavailable"``, no event).
    """

    poll_id: str
    option_id: int
    kind: OptionKind = "event"
    external_id: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_variant(self) -> "PollOption":
        if self.kind == "event" and not self.external_id:
            raise ValueError("event option requires external_id")
        if self.kind == "unavailable" and self.external_id is not None:
            raise ValueError("unavailable option cannot reference an event")
        return self

    @classmethod
    def event(cls, poll_id: str, option_id: int, external_id: str) -> "PollOption":
        return cls(poll_id=poll_id, option_id=option_id, kind="event", external_id=external_id)

    @classmethod
    def unavailable(cls, poll_id: str, option_id: int) -> "PollOption":
        return cls(poll_id=poll_id, option_id=option_id, kind="unavailable")

    @property
    def is_unavailable(self) -> bool:
        return self.kind == "unavailable"


class Poll(BaseModel):
    """A poll sent through the messaging provider."""

    poll_id: str
    tenant_id: str
    message_id: int
    group_key: Optional[str] = None  # None = date-window poll
    title: str
    created_at: datetime = Field(default_factory=utcnow)
    processed_for_registration: bool = False
    options: list[PollOption] = Field(default_factory=list)


class Vote(BaseModel):
    """One user's ballot on one poll. Replaced wholesale on re-vote."""

    poll_id: str
    user_id: int
    display_name: str
    option_ids: list[int] = Field(default_factory=list)
    voted_at: datetime = Field(default_factory=utcnow)


class PollChoice(BaseModel):
    """A planned option: label plus the event it stands for (None = sentinel)."""

    label: str
    external_id: Optional[str] = None

    @property
    def is_unavailable(self) -> bool:
        return self.external_id is None


class PollSpec(BaseModel):
    """A poll ready to send: question plus ordered options."""

    title: str
    group_key: Optional[str] = None
    options: list[PollChoice] = Field(default_factory=list)


class OptionTally(BaseModel):
    """Distinct-voter count for one option."""

    option: PollOption
    vote_count: int = 0
    voters: list[str] = Field(default_factory=list)

    @property
    def option_id(self) -> int:
        return self.option.option_id

    @property
    def external_id(self) -> Optional[str]:
        return self.option.external_id


class PollSummary(BaseModel):
    """An unprocessed poll with its distinct voter count."""

    poll: Poll
    vote_count: int


class BallotAnswer(BaseModel):
    """Ballot event as delivered by the messaging provider."""

    poll_id: str
    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    option_ids: list[int] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        parts = [
            f"@{self.username}" if self.username else None,
            self.first_name,
            self.last_name,
        ]
        name = " ".join(p for p in parts if p)
        return name or f"user_{self.user_id}"


class SentPoll(BaseModel):
    """Identifiers assigned by the messaging provider."""

    poll_id: str
    message_id: int
