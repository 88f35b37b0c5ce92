"""Extractor for the legacy column layout (`.schedule-column`)."""

from typing import Optional

from bs4 import BeautifulSoup, Tag
from rich.console import Console

from quizpoll_pipeline.extractors.cards import difficulty_of, node_text
from quizpoll_pipeline.extractors.patterns import (
    COLUMN_SELECTOR,
    extract_bracket_content,
    extract_game_number,
    external_id_from_url,
    is_time_token,
    synthesize_external_id,
    to_absolute,
)
from quizpoll_pipeline.models import RawEvent

console = Console()


def parse_column(column: Tag, base_url: str) -> Optional[RawEvent]:
    """Parse one schedule column. Returns None when title or date is missing."""
    block = column.select_one(".schedule-block")
    if block is None:
        return None

    head = block.select_one("a.schedule-block-head")
    headings = head.select(".h2.h2-game-card") if head else []
    title_left = node_text(head.select_one(".h2.h2-game-card.h2-left")) if head else ""
    number_text = node_text(headings[1]) if len(headings) > 1 else ""
    number = extract_game_number(number_text)
    full_title = f"{title_left} {number_text}".strip()

    game_type = extract_bracket_content(title_left) or title_left

    # "4 ноября, пт   RU" -> "4 ноября"
    date_line = node_text(block.select_one(".block-date-with-language-game"))
    date_text = date_line.split(",")[0].strip()

    time_text = ""
    for el in block.select(".schedule-info .techtext"):
        candidate = node_text(el)
        if is_time_token(candidate):
            time_text = candidate

    href = head.get("href") if head else None
    if not href:
        more = next(
            (a for a in block.select("a[href]") if "Подробнее" in a.get_text()),
            None,
        )
        href = more.get("href") if more else None
    url = to_absolute(href, base_url)

    if not full_title or not date_text:
        return None

    external_id = (
        column.get("id")
        or external_id_from_url(url)
        or synthesize_external_id(full_title, date_text, time_text)
    )

    return RawEvent(
        external_id=str(external_id),
        title=f"{title_left} #{number or ''}".strip(),
        game_type=game_type,
        game_number=number,
        date_text=date_text,
        time_text=time_text or None,
        venue=node_text(block.select_one(".schedule-block-info-bar"), drop_buttons=True),
        address=node_text(block.select_one(".techtext-halfwhite")),
        price=node_text(block.select_one(".new-price .price")),
        difficulty=difficulty_of(block),
        status="",
        url=url,
    )


def has_column_layout(soup: BeautifulSoup) -> bool:
    return soup.select_one(COLUMN_SELECTOR) is not None


def extract_columns(html: str, base_url: str) -> list[RawEvent]:
    """Extract events from legacy column markup, skipping malformed columns."""
    soup = BeautifulSoup(html, "html.parser")
    columns = soup.select(COLUMN_SELECTOR)

    items: list[RawEvent] = []
    for column in columns:
        try:
            item = parse_column(column, base_url)
        except (AttributeError, IndexError, ValueError) as e:
            console.print(f"[yellow]Skipping malformed schedule column: {e}[/yellow]")
            continue
        if item:
            items.append(item)

    console.print(f"[dim]Columns: parsed {len(items)} of {len(columns)} ({len(html)} chars)[/dim]")
    return items
