"""Regex patterns and CSS selectors shared by fetcher and extractors."""

import re
from typing import Optional
from urllib.parse import urljoin

# "#1212" -> "1212"
GAME_NUMBER_PATTERN = re.compile(r"#\s*(\d+)")

# "[music party] 2000-е" -> whole bracketed tail
BRACKET_CONTENT_PATTERN = re.compile(r"\[.+?\].*")

# "в 19:30" / "at 19:30"
TIME_TOKEN_PATTERN = re.compile(r"^(?:в|at)\s*\d{1,2}:\d{2}$", re.I)

# Layout signatures
CARD_SELECTOR = ".game-card"
CARD_NAME_SELECTOR = ".game-card__name-wrapper"
COLUMN_SELECTOR = ".schedule-column"
RECORD_SELECTOR = ".schedule-column, .game-card__wrap, .game-card"
PAGINATOR_SELECTOR = ".game-pagination__list-item"


def extract_game_number(text: str) -> Optional[str]:
    """Extract package number from text ("Квиз, плиз! #12" -> "12")."""
    match = GAME_NUMBER_PATTERN.search(text or "")
    return match.group(1) if match else None


def extract_bracket_content(text: str) -> Optional[str]:
    """Return bracketed type with its tail, or None."""
    match = BRACKET_CONTENT_PATTERN.search(text or "")
    return match.group(0).strip() if match else None


def is_time_token(text: str) -> bool:
    return bool(TIME_TOKEN_PATTERN.match((text or "").strip()))


def normalize_time_token(text: str) -> str:
    """Normalize "at 19:30" to "в 19:30"."""
    return re.sub(r"^at\s*", "в ", (text or "").strip(), flags=re.I)


def collapse_whitespace(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def to_absolute(href: Optional[str], base_url: str) -> str:
    """Resolve a possibly relative href against the page URL."""
    if not href:
        return base_url
    if href.startswith("http"):
        return href
    return urljoin(base_url, href)


def external_id_from_url(url: str) -> Optional[str]:
    """Stable id from "/game/<id>" path or "id=" query, if present."""
    match = re.search(r"/game/([^/?#]+)", url)
    if match:
        return match.group(1)
    match = re.search(r"[?&]id=([^&#]+)", url)
    if match:
        return match.group(1)
    return None


def synthesize_external_id(title: str, date_text: str, time_text: Optional[str]) -> str:
    """Fallback id for records without a source id."""
    return collapse_whitespace(f"{title} {date_text} {time_text or ''}")
