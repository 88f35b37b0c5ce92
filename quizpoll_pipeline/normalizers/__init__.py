"""Normalizers: civil date text to instants, titles to package keys."""

from quizpoll_pipeline.normalizers.dates import parse_civil_datetime
from quizpoll_pipeline.normalizers.event import normalize_event
from quizpoll_pipeline.normalizers.groups import GroupKey, derive_group_key, group_key_from_parts, normalize_type_name

__all__ = [
    "parse_civil_datetime",
    "normalize_event",
    "GroupKey",
    "derive_group_key",
    "group_key_from_parts",
    "normalize_type_name",
]
