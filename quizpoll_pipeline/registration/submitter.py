"""Registration form submission."""

import asyncio
import random
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from pydantic import BaseModel
from rich.console import Console

from quizpoll_pipeline.extractors.fetch import ACCEPT_LANGUAGE, BROWSER_LAUNCH_ARGS, USER_AGENTS
from quizpoll_pipeline.models import TeamInfo

console = Console()

SUCCESS_INDICATORS = ["успешно", "зарегистрирован", "спасибо", "подтверждение", "отправлено"]
ERROR_INDICATORS = ["ошибка", "неверно", "заполните", "обязательно"]
CAPTCHA_INDICATORS = ["captcha", "подтвердите"]

FORM_SELECTORS = {
    "team": 'input[name="team"]',
    "captain": 'input[name="name"]',
    "email": 'input[name="email"]',
    "phone": 'input[name="phone"]',
    "players": 'select[name="num"]',
    "privacy": 'input[name="privacy"]',
    "submit": 'button[type="submit"]',
}

NAV_TIMEOUT_MS = 30_000
FORM_TIMEOUT_MS = 10_000


class RegistrationResult(BaseModel):
    success: bool
    error: Optional[str] = None


class RegistrationSubmitter(Protocol):
    """Registers a team for one event. Never raises; failures are results."""

    async def submit(self, event_url: str, team: TeamInfo, player_count: int) -> RegistrationResult: ...


def has_captcha(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in CAPTCHA_INDICATORS)


def classify_response(text: str) -> RegistrationResult:
    """Judge the page text shown after submitting the form.

    Error wording wins over success wording. With neither present the
    submission is taken as accepted.
    """
    lowered = text.lower()
    if any(marker in lowered for marker in ERROR_INDICATORS):
        return RegistrationResult(success=False, error="Error message detected on page after submission")
    if not any(marker in lowered for marker in SUCCESS_INDICATORS):
        console.print("[yellow]No clear success/error indicator, assuming success[/yellow]")
    return RegistrationResult(success=True)


class BrowserRegistrationSubmitter:
    """Fill and submit the event's registration form in Chromium."""

    def __init__(self, headless: bool = True, typing_delay_ms: int = 100):
        self.headless = headless
        self.typing_delay_ms = typing_delay_ms

    async def submit(self, event_url: str, team: TeamInfo, player_count: int) -> RegistrationResult:
        console.print(f"[cyan]Registering for {event_url}[/cyan]")
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless, args=BROWSER_LAUNCH_ARGS)
                try:
                    context = await browser.new_context(
                        user_agent=random.choice(USER_AGENTS),
                        locale="ru-RU",
                        extra_http_headers={"Accept-Language": ACCEPT_LANGUAGE},
                    )
                    page = await context.new_page()
                    await page.goto(event_url, wait_until="networkidle", timeout=NAV_TIMEOUT_MS)
                    await asyncio.sleep(1.5)

                    if has_captcha(await page.inner_text("body")):
                        console.print("[red]CAPTCHA detected on registration page[/red]")
                        return RegistrationResult(success=False, error="CAPTCHA detected on registration page")

                    await page.wait_for_selector(FORM_SELECTORS["team"], timeout=FORM_TIMEOUT_MS)
                    await page.type(FORM_SELECTORS["team"], team.team_name, delay=self.typing_delay_ms)
                    await page.type(FORM_SELECTORS["captain"], team.captain_name, delay=self.typing_delay_ms)
                    await page.type(FORM_SELECTORS["email"], team.email, delay=self.typing_delay_ms)
                    await page.type(FORM_SELECTORS["phone"], team.phone, delay=self.typing_delay_ms)
                    await page.select_option(FORM_SELECTORS["players"], str(player_count))
                    await page.check(FORM_SELECTORS["privacy"])
                    console.print(f"[dim]Form filled with {player_count} players[/dim]")

                    await asyncio.sleep(0.5)
                    await page.click(FORM_SELECTORS["submit"])
                    try:
                        await page.wait_for_load_state("networkidle", timeout=FORM_TIMEOUT_MS)
                    except PlaywrightTimeoutError:
                        console.print("[dim]No navigation after submit, checking page text[/dim]")
                    await asyncio.sleep(2)

                    result = classify_response(await page.inner_text("body"))
                finally:
                    await browser.close()
        except PlaywrightError as e:
            console.print(f"[red]Registration failed for {event_url}: {e}[/red]")
            return RegistrationResult(success=False, error=str(e))

        if result.success:
            console.print(f"[green]Registered for {event_url}[/green]")
        else:
            console.print(f"[red]Registration rejected for {event_url}: {result.error}[/red]")
        return result
