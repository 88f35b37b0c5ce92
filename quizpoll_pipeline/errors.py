"""Error taxonomy for the schedule pipeline.

Strategy-level fetch errors (transient, anti-bot, rejected content) are
handled inside the fetcher. Only ``FetchFailure`` reaches the caller once
every strategy has been exhausted.
"""

from typing import Optional


class QuizPollError(Exception):
    """Base class for all pipeline errors."""


class FetchFailure(QuizPollError):
    """All fetch strategies exhausted for a URL."""

    def __init__(self, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason or 'unknown'}")


class TransientFetchFailure(QuizPollError):
    """Network error, timeout or bad status. Retried within a strategy."""


class AntiBotChallenge(QuizPollError):
    """Content matched a CAPTCHA / robot-check signature."""


class ContentRejected(QuizPollError):
    """Content lacks the structural markers the extractors need."""


class StoreFailure(QuizPollError):
    """Persistence layer error."""


class SelectionError(QuizPollError):
    """Registration selector transition not allowed from the current state."""


class RegistrationFailure(QuizPollError):
    """Registration collaborator reported a failure for one event."""


class SourceConflict(QuizPollError):
    """Sync requested without a usable source URL for the tenant."""
