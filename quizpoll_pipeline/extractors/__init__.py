"""Schedule retrieval and extraction.

This package provides:
1. A resilient fetcher (httpx first, Playwright fallback, anti-bot detection)
2. Extractors turning raw content into RawEvent lists:
   - Card markup (current layout)
   - Column markup (legacy layout)
   - JSON schedule API
"""

from quizpoll_pipeline.extractors.api import ApiPage, city_code_from_url, extract_api_page
from quizpoll_pipeline.extractors.cards import extract_cards
from quizpoll_pipeline.extractors.columns import extract_columns
from quizpoll_pipeline.extractors.fetch import (
    BrowserStrategy,
    FetchResult,
    HttpStrategy,
    ResilientFetcher,
    RetryPolicy,
    api_fetcher,
    markup_fetcher,
)
from quizpoll_pipeline.extractors.markup import detect_layout, discover_max_page, extract_markup

__all__ = [
    "ApiPage",
    "city_code_from_url",
    "extract_api_page",
    "extract_cards",
    "extract_columns",
    "BrowserStrategy",
    "FetchResult",
    "HttpStrategy",
    "ResilientFetcher",
    "RetryPolicy",
    "api_fetcher",
    "markup_fetcher",
    "detect_layout",
    "discover_max_page",
    "extract_markup",
]
