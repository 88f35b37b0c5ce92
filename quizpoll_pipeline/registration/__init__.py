"""Vote-driven registration: selection state machine and form submission."""

from quizpoll_pipeline.registration.selector import (
    RegistrationOutcome,
    RegistrationReport,
    RegistrationSelector,
)
from quizpoll_pipeline.registration.state import Selection, SelectionStore, SelectorState, WinningEvent
from quizpoll_pipeline.registration.submitter import (
    BrowserRegistrationSubmitter,
    RegistrationResult,
    RegistrationSubmitter,
)

__all__ = [
    "RegistrationOutcome",
    "RegistrationReport",
    "RegistrationSelector",
    "Selection",
    "SelectionStore",
    "SelectorState",
    "WinningEvent",
    "BrowserRegistrationSubmitter",
    "RegistrationResult",
    "RegistrationSubmitter",
]
