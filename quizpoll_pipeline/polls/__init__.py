"""Poll planning, publishing and vote aggregation."""

from quizpoll_pipeline.polls.aggregator import tally, winners
from quizpoll_pipeline.polls.builder import build_package_polls, build_polls, build_window_polls
from quizpoll_pipeline.polls.publisher import Messenger, publish_polls, record_ballot

__all__ = [
    "tally",
    "winners",
    "build_package_polls",
    "build_polls",
    "build_window_polls",
    "Messenger",
    "publish_polls",
    "record_ballot",
]
