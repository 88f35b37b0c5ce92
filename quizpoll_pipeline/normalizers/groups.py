"""Package (group) key derivation from event titles."""

import re
from typing import NamedTuple, Optional

TRAILING_PUNCTUATION = re.compile(r"[\s!?.,;:…]+$")
TRAILING_NUMBER = re.compile(r"^\s*(\d+)")

# "Квиз, плиз" in any punctuation/case variant
CLASSIC_TYPE_PATTERN = re.compile(r"^квиз\s*,?\s*плиз$", re.I)


class GroupKey(NamedTuple):
    key: str  # "<type_name>#<number>"
    type_name: str
    number: str


def normalize_type_name(name: str) -> str:
    """Collapse whitespace and drop trailing punctuation ("Квиз, плиз!" -> "Квиз, плиз")."""
    collapsed = re.sub(r"\s+", " ", name or "").strip()
    return TRAILING_PUNCTUATION.sub("", collapsed)


def derive_group_key(title: str) -> Optional[GroupKey]:
    """Split "<type> #<number>" into its package key.

    The last ``#`` token is the package number; everything before it is the
    type name. Returns None when there is no number or no type name.
    """
    head, sep, tail = (title or "").rpartition("#")
    if not sep:
        return None
    match = TRAILING_NUMBER.match(tail)
    if not match:
        return None
    type_name = normalize_type_name(head)
    if not type_name:
        return None
    number = str(int(match.group(1)))
    return GroupKey(f"{type_name}#{number}", type_name, number)


def group_key_from_parts(type_name: Optional[str], number: Optional[str]) -> Optional[GroupKey]:
    """Package key from an extracted type and number. None when either is missing."""
    type_name = normalize_type_name(type_name or "")
    match = TRAILING_NUMBER.match(number or "")
    if not type_name or not match:
        return None
    number = str(int(match.group(1)))
    return GroupKey(f"{type_name}#{number}", type_name, number)


def split_group_key(group_key: str) -> tuple[str, str]:
    """Inverse of the key format: (type_name, number)."""
    type_name, _, number = group_key.rpartition("#")
    return type_name, number


def is_classic_type(type_name: str) -> bool:
    return bool(CLASSIC_TYPE_PATTERN.match(normalize_type_name(type_name)))
