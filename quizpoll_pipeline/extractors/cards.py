"""Extractor for the current card layout (`.game-card` with a name wrapper)."""

from typing import Optional

from bs4 import BeautifulSoup, Tag
from rich.console import Console

from quizpoll_pipeline.extractors.patterns import (
    CARD_NAME_SELECTOR,
    CARD_SELECTOR,
    collapse_whitespace,
    extract_bracket_content,
    extract_game_number,
    external_id_from_url,
    is_time_token,
    normalize_time_token,
    synthesize_external_id,
    to_absolute,
)
from quizpoll_pipeline.models import RawEvent

console = Console()


def node_text(node: Optional[Tag], drop_buttons: bool = False) -> str:
    """Visible text of a node, optionally without nested buttons."""
    if node is None:
        return ""
    if drop_buttons:
        for button in node.find_all("button"):
            button.decompose()
    return collapse_whitespace(node.get_text(" ", strip=True))


def difficulty_of(node: Tag) -> str:
    title = node_text(node.select_one(".badge-difficulty__title"))
    if title:
        return title
    icon = node.select_one(".badge-difficulty__icon img")
    return (icon.get("alt") or "").strip() if icon else ""


def parse_card(card: Tag, base_url: str) -> Optional[RawEvent]:
    """Parse one card. Returns None when title or date is missing."""
    name_nodes = card.select(".game-card__name-wrapper .game-card__name")
    title_left = node_text(name_nodes[0]) if name_nodes else ""
    number_text = node_text(name_nodes[1]) if len(name_nodes) > 1 else ""
    number = extract_game_number(number_text) or extract_game_number(title_left)
    full_title = f"{title_left} {number_text}".strip()

    game_type = extract_bracket_content(title_left) or title_left

    date_text = node_text(card.select_one(".game-card__date"))

    time_text = ""
    for el in card.select(".game-card__location-wrapper .game-card__location-text"):
        candidate = normalize_time_token(node_text(el))
        if is_time_token(candidate):
            time_text = candidate

    link = card.select_one(".game-card__name-wrapper a.game-card__name") or card.select_one(
        ".game-card__buttons a[href]"
    )
    url = to_absolute(link.get("href") if link else None, base_url)

    if not full_title or not date_text:
        return None

    external_id = external_id_from_url(url) or synthesize_external_id(full_title, date_text, time_text)

    return RawEvent(
        external_id=external_id,
        title=f"{title_left} #{number or ''}".strip(),
        game_type=game_type,
        game_number=number,
        date_text=date_text,
        time_text=time_text or None,
        venue=node_text(card.select_one(".game-card__location-text__title"), drop_buttons=True),
        address=node_text(card.select_one(".game-card__location-text__subtitle"), drop_buttons=True),
        price=node_text(card.select_one(".game-card__cost-title")),
        difficulty=difficulty_of(card),
        status=node_text(card.select_one(".game-card__days")),
        url=url,
    )


def has_card_layout(soup: BeautifulSoup) -> bool:
    return any(card.select_one(CARD_NAME_SELECTOR) for card in soup.select(CARD_SELECTOR))


def extract_cards(html: str, base_url: str) -> list[RawEvent]:
    """Extract events from card markup, skipping malformed cards."""
    soup = BeautifulSoup(html, "html.parser")
    cards = [card for card in soup.select(CARD_SELECTOR) if card.select_one(CARD_NAME_SELECTOR)]

    items: list[RawEvent] = []
    for card in cards:
        try:
            item = parse_card(card, base_url)
        except (AttributeError, IndexError, ValueError) as e:
            console.print(f"[yellow]Skipping malformed game card: {e}[/yellow]")
            continue
        if item:
            items.append(item)

    console.print(f"[dim]Cards: parsed {len(items)} of {len(cards)} ({len(html)} chars)[/dim]")
    return items
