"""Markup layout detection, extraction dispatch and paginator discovery."""

from typing import Optional

import httpx
from bs4 import BeautifulSoup
from rich.console import Console

from quizpoll_pipeline.extractors.cards import extract_cards, has_card_layout
from quizpoll_pipeline.extractors.columns import extract_columns, has_column_layout
from quizpoll_pipeline.extractors.patterns import PAGINATOR_SELECTOR
from quizpoll_pipeline.models import RawEvent

console = Console()


def detect_layout(html: str) -> Optional[str]:
    """Return "cards", "columns" or None."""
    soup = BeautifulSoup(html, "html.parser")
    if has_card_layout(soup):
        return "cards"
    if has_column_layout(soup):
        return "columns"
    return None


def extract_markup(html: str, base_url: str) -> list[RawEvent]:
    """Extract with the card layout, falling back to legacy columns."""
    layout = detect_layout(html)
    if layout == "cards":
        items = extract_cards(html, base_url)
        if items:
            return items
        return extract_columns(html, base_url)
    if layout == "columns":
        return extract_columns(html, base_url)
    console.print(f"[yellow]No known schedule layout on {base_url[:60]}[/yellow]")
    return []


def discover_max_page(html: str) -> int:
    """Highest page number shown in the paginator (1 when absent)."""
    soup = BeautifulSoup(html, "html.parser")
    max_page = 1
    for item in soup.select(PAGINATOR_SELECTOR):
        text = item.get_text(" ", strip=True)
        if text.isdigit():
            max_page = max(max_page, int(text))
    return max_page


def page_url(source_url: str, page: int) -> str:
    """Source URL with its ``page`` query parameter set."""
    return str(httpx.URL(source_url).copy_set_param("page", str(page)))
