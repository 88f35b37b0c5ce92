"""Runtime settings loaded from environment (and .env)."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Telegram polls accept at most 10 options
PROVIDER_MAX_POLL_OPTIONS = 10

DEFAULT_STORE_PATH = Path(".cache") / "catalog.json"
DEFAULT_API_URL = "https://api.quizplease.ru/api/games/schedule/{city_code}"


class Settings(BaseModel):
    """Pipeline settings."""

    store_path: Optional[Path] = DEFAULT_STORE_PATH
    max_concurrency: int = Field(default=5, ge=1)
    max_poll_options: int = Field(default=PROVIDER_MAX_POLL_OPTIONS, ge=2)
    min_winner_votes: int = Field(default=2, ge=1)
    utc_offset_hours: int = 3  # Moscow time, no DST
    max_pages: int = Field(default=20, ge=1)
    api_url: str = DEFAULT_API_URL
    headless: bool = True
    selection_ttl_minutes: int = 30

    @property
    def poll_options_limit(self) -> int:
        """Configured option limit clamped to what the provider accepts."""
        return min(self.max_poll_options, PROVIDER_MAX_POLL_OPTIONS)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env() -> Settings:
    """Build settings from QUIZPOLL_* environment variables."""
    store_path = os.environ.get("QUIZPOLL_STORE_PATH")
    return Settings(
        store_path=Path(store_path) if store_path else DEFAULT_STORE_PATH,
        max_concurrency=int(os.environ.get("QUIZPOLL_MAX_CONCURRENCY", 5)),
        max_poll_options=int(os.environ.get("QUIZPOLL_MAX_POLL_OPTIONS", PROVIDER_MAX_POLL_OPTIONS)),
        min_winner_votes=int(os.environ.get("QUIZPOLL_MIN_WINNER_VOTES", 2)),
        utc_offset_hours=int(os.environ.get("QUIZPOLL_UTC_OFFSET_HOURS", 3)),
        max_pages=int(os.environ.get("QUIZPOLL_MAX_PAGES", 20)),
        api_url=os.environ.get("QUIZPOLL_API_URL", DEFAULT_API_URL),
        headless=_env_bool("QUIZPOLL_HEADLESS", True),
        selection_ttl_minutes=int(os.environ.get("QUIZPOLL_SELECTION_TTL_MINUTES", 30)),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load .env (overriding shell vars) and return cached settings."""
    load_dotenv(override=True)
    return settings_from_env()
