"""Resilient fetcher with UA rotation, retries, anti-bot detection and Playwright fallback.

Strategies are tried in order, each with its own retry/backoff policy:
1. Fast path: httpx (plain GET with realistic browser headers)
2. Slow path: Playwright Chromium, revealing all records by clicking
   "load more" and scrolling until the record count stops growing

A fast-path response that looks like a CAPTCHA page, or that lacks the
schedule layout, escalates straight to the next strategy.
"""

import asyncio
import json
import random
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from rich.console import Console

from quizpoll_pipeline.errors import (
    AntiBotChallenge,
    ContentRejected,
    FetchFailure,
    TransientFetchFailure,
)
from quizpoll_pipeline.extractors.patterns import RECORD_SELECTOR

console = Console()

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.7; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
]

ACCEPT_LANGUAGE = "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7"

# Challenge page signatures
ANTI_BOT_PATTERNS = [
    r"подтвердите.*(?:не\s*робот|robot)",
    r"captcha",
    r"cf-browser-verification",
    r"challenge-platform",
]

BROWSER_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-notifications",
    "--disable-blink-features=AutomationControlled",
    "--ignore-certificate-errors",
    "--lang=ru-RU,ru",
]

HTTP_TIMEOUT = 25.0
NAV_TIMEOUT_MS = 90_000
PAGE_TIMEOUT_MS = 45_000
RECORD_WAIT_MS = 30_000
NETWORK_IDLE_MS = 25_000

MAX_REVEAL_ITERATIONS = 120
STAGNATION_LIMIT = 4  # Consecutive iterations without new records
REVEAL_DELAY_MS = 800

NAVIGATION_CHAIN = ["domcontentloaded", "load", "networkidle"]

LOAD_MORE_SELECTORS = [
    ".load-more-button",
    ".schedule-more__button",
    ".schedule-more button",
    ".schedule-more a",
]
LOAD_MORE_TEXTS = ["Загрузить ещё", "Показать ещё", "Показать больше"]


def contains_challenge(html: str) -> bool:
    """Detect anti-bot challenge pages."""
    return any(re.search(pattern, html, re.I) for pattern in ANTI_BOT_PATTERNS)


def looks_like_challenge(html: str) -> bool:
    """Challenge signature on a page without schedule records.

    Real schedule pages may embed a captcha widget for their own forms.
    """
    if not contains_challenge(html):
        return False
    return BeautifulSoup(html, "html.parser").select_one(RECORD_SELECTOR) is None


def require_schedule_markup(html: str) -> None:
    """Reject markup with neither legacy columns nor game cards (likely a JS shell)."""
    soup = BeautifulSoup(html, "html.parser")
    if not soup.select_one(RECORD_SELECTOR):
        raise ContentRejected("no schedule columns or game cards in markup")


def require_json(text: str) -> None:
    try:
        json.loads(text)
    except ValueError as e:
        raise ContentRejected(f"response is not JSON: {e}") from e


def build_headers(url: str) -> dict[str, str]:
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.9,*/*;q=0.8",
        "Accept-Language": ACCEPT_LANGUAGE,
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Referer": url,
    }


@dataclass
class RetryPolicy:
    """Attempts and exponential backoff for one strategy."""

    attempts: int = 2
    backoff: float = 0.5  # Seconds before the 2nd attempt, doubled afterwards
    retry_rejected: bool = False  # Retry on challenge/rejected content instead of escalating

    def delay(self, attempt: int) -> float:
        return self.backoff * (2 ** (attempt - 1))


class FetchStrategy(Protocol):
    name: str
    retry: RetryPolicy

    async def attempt(self, url: str) -> str: ...


class FetchResult:
    """Result of a fetch with metadata."""

    def __init__(
        self,
        url: str,
        content: Optional[str] = None,
        strategy: Optional[str] = None,
        error_reason: Optional[str] = None,
        attempts: int = 0,
    ):
        self.url = url
        self.content = content
        self.strategy = strategy  # "httpx" or "playwright"
        self.error_reason = error_reason  # "timeout", "anti_bot", "503", ...
        self.attempts = attempts

    @property
    def ok(self) -> bool:
        return self.content is not None

    def unwrap(self) -> str:
        """Return content or raise FetchFailure."""
        if self.content is None:
            raise FetchFailure(self.url, self.error_reason)
        return self.content


class HttpStrategy:
    """Plain GET via httpx."""

    name = "httpx"

    def __init__(
        self,
        validator: Optional[Callable[[str], None]] = None,
        retry: Optional[RetryPolicy] = None,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.validator = validator
        self.retry = retry or RetryPolicy(attempts=2, backoff=0.5)
        self.timeout = timeout
        self.transport = transport

    async def attempt(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url, headers=build_headers(url))
                response.raise_for_status()
                text = response.text
        except httpx.TimeoutException as e:
            raise TransientFetchFailure("timeout") from e
        except httpx.HTTPStatusError as e:
            raise TransientFetchFailure(str(e.response.status_code)) from e
        except httpx.RequestError as e:
            raise TransientFetchFailure("connection") from e

        if looks_like_challenge(text):
            raise AntiBotChallenge("HTTP response looks like an anti-bot challenge")
        if self.validator:
            self.validator(text)
        return text


async def count_records(page: Page, selector: str = RECORD_SELECTOR) -> int:
    return await page.locator(selector).count()


async def click_load_more(page: Page) -> bool:
    """Click a visible "load more" control. Returns True if clicked."""
    candidates = [page.locator(selector).first for selector in LOAD_MORE_SELECTORS]
    candidates += [page.get_by_text(text, exact=False).first for text in LOAD_MORE_TEXTS]
    for button in candidates:
        try:
            if await button.is_visible():
                await button.scroll_into_view_if_needed(timeout=2000)
                await button.click(timeout=2000)
                return True
        except PlaywrightError:
            continue
    return False


async def scroll_to_bottom(page: Page) -> None:
    await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")


async def goto_with_fallback(page: Page, url: str) -> bool:
    """Navigate trying each completion criterion in turn."""
    for wait_until in NAVIGATION_CHAIN:
        try:
            console.print(f"[dim]Navigating to {url[:60]} (wait_until={wait_until})[/dim]")
            await page.goto(url, wait_until=wait_until, timeout=NAV_TIMEOUT_MS)
            return True
        except PlaywrightError as e:
            console.print(f"[yellow]Navigation failed with wait_until={wait_until}: {e}[/yellow]")
            await page.wait_for_timeout(1000)
    return False


async def reveal_all_records(
    page: Page,
    max_iterations: int = MAX_REVEAL_ITERATIONS,
    stagnation_limit: int = STAGNATION_LIMIT,
    delay_ms: int = REVEAL_DELAY_MS,
) -> int:
    """Alternate "load more" and scrolling until the record count stagnates.

    Returns the final record count.
    """
    previous = await count_records(page)
    stagnant = 0

    for _ in range(max_iterations):
        if not await click_load_more(page):
            await scroll_to_bottom(page)

        try:
            await page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_MS)
        except PlaywrightTimeoutError:
            pass
        await page.wait_for_timeout(delay_ms)

        current = await count_records(page)
        if current <= previous:
            stagnant += 1
            if stagnant >= stagnation_limit:
                console.print(f"[dim]No new records after {stagnant} iterations, stopping[/dim]")
                break
        else:
            stagnant = 0
            console.print(f"[dim]Record count increased: {current}[/dim]")
        previous = current

    return previous


class BrowserStrategy:
    """Full rendering via Playwright Chromium."""

    name = "playwright"

    def __init__(
        self,
        retry: Optional[RetryPolicy] = None,
        headless: bool = True,
        reveal: bool = True,
    ):
        self.retry = retry or RetryPolicy(attempts=3, backoff=1.5, retry_rejected=True)
        self.headless = headless
        self.reveal = reveal

    async def attempt(self, url: str) -> str:
        console.print(f"[cyan]Playwright fetching: {url[:60]}...[/cyan]")
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless, args=BROWSER_LAUNCH_ARGS)
                try:
                    context = await browser.new_context(
                        user_agent=random.choice(USER_AGENTS),
                        viewport={"width": 1280, "height": 1400},
                        locale="ru-RU",
                        extra_http_headers={"Accept-Language": ACCEPT_LANGUAGE},
                    )
                    page = await context.new_page()
                    page.set_default_navigation_timeout(NAV_TIMEOUT_MS)
                    page.set_default_timeout(PAGE_TIMEOUT_MS)

                    if not await goto_with_fallback(page, url):
                        raise TransientFetchFailure("navigation failed for all wait strategies")

                    if self.reveal:
                        try:
                            await page.wait_for_selector(RECORD_SELECTOR, timeout=RECORD_WAIT_MS)
                            await reveal_all_records(page)
                        except PlaywrightTimeoutError:
                            console.print("[yellow]No schedule records rendered, keeping page as is[/yellow]")

                    html = await page.content()
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise TransientFetchFailure(f"playwright: {e}") from e

        if looks_like_challenge(html):
            raise AntiBotChallenge("anti-bot challenge even after browser navigation")
        return html


class ResilientFetcher:
    """Dispatch a URL through an ordered list of strategies."""

    def __init__(
        self,
        strategies: list[FetchStrategy],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.strategies = strategies
        self._sleep = sleep

    async def fetch(self, url: str) -> FetchResult:
        last_error: Optional[str] = None
        attempts = 0

        for strategy in self.strategies:
            policy = strategy.retry
            for attempt in range(1, policy.attempts + 1):
                attempts += 1
                try:
                    content = await strategy.attempt(url)
                    console.print(f"[dim]{strategy.name} fetched {url[:60]} ({len(content)} chars)[/dim]")
                    return FetchResult(url, content=content, strategy=strategy.name, attempts=attempts)
                except AntiBotChallenge as e:
                    last_error = "anti_bot"
                    console.print(f"[yellow]{strategy.name}: {e}[/yellow]")
                    if not policy.retry_rejected:
                        break
                except ContentRejected as e:
                    last_error = "rejected"
                    console.print(f"[yellow]{strategy.name}: {e}[/yellow]")
                    if not policy.retry_rejected:
                        break
                except TransientFetchFailure as e:
                    last_error = str(e)
                    console.print(f"[dim]{strategy.name} attempt {attempt} failed: {e}[/dim]")

                if attempt < policy.attempts:
                    await self._sleep(policy.delay(attempt))

        console.print(f"[red]Failed to fetch {url}: {last_error}[/red]")
        return FetchResult(url, error_reason=last_error, attempts=attempts)


def markup_fetcher(
    headless: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ResilientFetcher:
    """Fetcher for schedule pages: httpx, then Playwright."""
    return ResilientFetcher([
        HttpStrategy(validator=require_schedule_markup, transport=transport),
        BrowserStrategy(headless=headless),
    ])


def api_fetcher(transport: Optional[httpx.AsyncBaseTransport] = None) -> ResilientFetcher:
    """Fetcher for the JSON schedule API (no browser fallback)."""
    return ResilientFetcher([
        HttpStrategy(validator=require_json, retry=RetryPolicy(attempts=3, backoff=0.5), transport=transport),
    ])
