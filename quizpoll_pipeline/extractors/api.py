"""JSON schedule API extractor.

The API is keyed by a numeric city code; the tenant's source URL is mapped
to a code through its subdomain (``spb.quizplease.ru`` -> 11). Responses look
like::

    {"status": "ok",
     "data": {"data": [{"id": "...", "title": "...", "date": "02.01.2026 20:00", ...}],
              "pagination": {"total": 42, "current_page": 1, "total_pages": 3, ...}}}
"""

import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from quizpoll_pipeline.extractors.patterns import (
    extract_bracket_content,
    extract_game_number,
    synthesize_external_id,
)
from quizpoll_pipeline.models import RawEvent

console = Console()

SOURCE_HOST_PATTERN = re.compile(r"^([^.]+)\.quizplease\.ru$")

# Subdomain -> API city code
CITY_SLUG_CODES = {
    "moscow": 4,
    "spb": 11,
    "novosibirsk": 5,
    "ekaterinburg": 7,
    "kazan": 15,
    "nizhniy": 9,
    "chelyabinsk": 6,
    "samara": 17,
    "omsk": 78,
    "rostov": 13,
    "ufa": 3,
    "cheboksary": 8,
    "tyumen": 18,
    "krasnodar": 31,
    "perm": 37,
    "voronezh": 61,
    "sochi": 62,
    "sevastopol": 63,
    "tambov": 65,
}

API_DATE_PATTERN = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})\s+(\d{1,2}):(\d{2})$")
ACTIVE_STATUS = 4


class ApiCity(BaseModel):
    slug: Optional[str] = None

    model_config = {"extra": "ignore"}


class ApiPlace(BaseModel):
    title: str = ""
    address: str = ""
    address_ru: str = ""
    city: Optional[ApiCity] = None

    model_config = {"extra": "ignore"}


class ApiTemplate(BaseModel):
    title: Optional[str] = None
    game_level: Optional[str] = None

    model_config = {"extra": "ignore"}


class ApiGame(BaseModel):
    """Raw game record from the schedule API."""

    id: Optional[str] = None
    title: str
    date: str  # "02.01.2026 20:00"
    place: Optional[ApiPlace] = None
    price: Optional[float] = None
    game_number: Optional[str] = None
    template: Optional[ApiTemplate] = None
    status: Optional[int] = None
    url: Optional[str] = None

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}


class ApiPagination(BaseModel):
    total: int = 0
    count: int = 0
    per_page: int = 0
    current_page: int = 1
    total_pages: int = 1


class ApiPage(BaseModel):
    """One decoded API page."""

    events: list[RawEvent] = Field(default_factory=list)
    total_pages: int = 1
    received: int = 0


def city_code_from_url(url: str) -> Optional[int]:
    """Map a tenant source URL to an API city code, or None if unmapped."""
    host = urlparse(url).hostname or ""
    match = SOURCE_HOST_PATTERN.match(host)
    if not match:
        return None
    return CITY_SLUG_CODES.get(match.group(1))


def build_api_page_url(template: str, city_code: int, page: int) -> str:
    return str(httpx.URL(template.format(city_code=city_code), params={"page": page}))


def format_price(price: Optional[float]) -> str:
    if not price:
        return ""
    amount = int(price) if float(price).is_integer() else price
    return f"{amount} ₽"


def api_game_to_raw(game: ApiGame, base_url: str) -> Optional[RawEvent]:
    """Convert one API game; None when the date is unparseable."""
    title_left = game.title.strip()
    number = str(game.game_number) if game.game_number else extract_game_number(title_left)
    full_title = f"{title_left} #{number}" if number and "#" not in title_left else title_left

    game_type = extract_bracket_content(title_left)
    if not game_type:
        game_type = title_left
        if "квиз" not in title_left.lower() and game.template and game.template.title:
            game_type = game.template.title

    match = API_DATE_PATTERN.match(game.date.strip())
    if not match:
        console.print(f"[yellow]API: could not parse date {game.date!r}[/yellow]")
        return None
    day, month, year, hour, minute = match.groups()
    date_text = f"{day}.{month}.{year}"
    time_text = f"в {int(hour):02d}:{minute}"

    place = game.place or ApiPlace()
    host = urlparse(base_url).hostname
    slug = place.city.slug if place.city and place.city.slug else None
    if game.id:
        game_host = f"{slug}.quizplease.ru" if slug else host
        url = f"https://{game_host}/game/{game.id}"
    else:
        url = game.url or base_url

    return RawEvent(
        external_id=game.id or synthesize_external_id(full_title, date_text, time_text),
        title=full_title,
        game_type=game_type,
        game_number=number,
        date_text=date_text,
        time_text=time_text,
        venue=place.title,
        address=place.address_ru or place.address,
        price=format_price(game.price),
        difficulty=(game.template.game_level if game.template else None) or "",
        status="" if game.status in (None, ACTIVE_STATUS) else str(game.status),
        url=url,
    )


def extract_api_page(payload: Any, base_url: str) -> ApiPage:
    """Decode one API response, skipping malformed games."""
    if not isinstance(payload, dict) or payload.get("status") != "ok":
        console.print("[yellow]API: invalid response envelope[/yellow]")
        return ApiPage()

    data = payload.get("data") or {}
    games = data.get("data") or []
    try:
        pagination = ApiPagination.model_validate(data.get("pagination") or {})
    except ValidationError:
        pagination = ApiPagination()

    events: list[RawEvent] = []
    for item in games:
        try:
            raw = api_game_to_raw(ApiGame.model_validate(item), base_url)
        except (ValidationError, TypeError, ValueError) as e:
            game_id = item.get("id") if isinstance(item, dict) else None
            console.print(f"[yellow]API: skipping game {game_id}: {e}[/yellow]")
            continue
        if raw:
            events.append(raw)

    console.print(f"[dim]API: parsed {len(events)} of {len(games)} games[/dim]")
    return ApiPage(events=events, total_pages=max(pagination.total_pages, 1), received=len(games))
