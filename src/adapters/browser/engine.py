"""Playwright-backed automation engine.

One Chromium process per batch; every session is its own `BrowserContext`,
so cookies and storage never leak between drivers.
"""

from __future__ import annotations

import base64
import logging

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

from adapters.browser.portal_page import (
    SELECTOR_REJECTION,
    SELECTOR_REJECTION_TITLE,
    SELECTOR_SUCCESS,
    fill_lookup_form,
    parse_result_table,
    should_block,
)
from core.config import AppSettings
from core.domain.models import DriverQuery
from core.interfaces.portal import EngineFactory

logger = logging.getLogger(__name__)

CHROMIUM_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--window-size=1920,1080",
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-infobars",
)

# Runs before any page script.
_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', { get: () => ['pt-BR', 'pt'] });
"""


class PlaywrightPortalSession:
    """A `PortalSession` over one Playwright context + page."""

    def __init__(self, *, context: BrowserContext, page: Page, settings: AppSettings) -> None:
        self._context = context
        self._page = page
        self._settings = settings
        self._timeout_ms = settings.step_timeout_seconds * 1000

    async def navigate(self) -> None:
        await self._page.goto(self._settings.portal_url, wait_until="networkidle", timeout=self._timeout_ms)

    async def submit(self, query: DriverQuery) -> None:
        await fill_lookup_form(self._page, query, timeout_ms=self._timeout_ms)

    async def wait_for_success(self) -> None:
        await self._page.locator(SELECTOR_SUCCESS).first.wait_for(state="visible", timeout=self._timeout_ms)

    async def wait_for_rejection(self) -> None:
        await self._page.locator(SELECTOR_REJECTION).first.wait_for(state="visible", timeout=self._timeout_ms)

    async def rejection_message(self) -> str:
        return await self._page.locator(SELECTOR_REJECTION_TITLE).first.inner_text()

    async def result_rows(self) -> dict[str, str]:
        return parse_result_table(await self._page.content())

    async def screenshot_base64(self) -> str:
        image = await self._page.screenshot(full_page=True)
        return base64.b64encode(image).decode("ascii")

    async def close(self) -> None:
        await self._context.close()


class PlaywrightEngine:
    """Shared Chromium browser; `open_session()` creates an isolated context."""

    def __init__(self, *, playwright: Playwright, browser: Browser, settings: AppSettings) -> None:
        self._playwright = playwright
        self._browser = browser
        self._settings = settings

    @classmethod
    async def launch(cls, settings: AppSettings | None = None) -> "PlaywrightEngine":
        settings = settings or AppSettings()
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=settings.headless,
                executable_path=str(settings.browser_executable_path) if settings.browser_executable_path else None,
                args=list(CHROMIUM_ARGS),
            )
        except Exception:
            await playwright.stop()
            raise
        logger.info("Chromium %s launched (headless=%s)", browser.version, settings.headless)
        return cls(playwright=playwright, browser=browser, settings=settings)

    async def open_session(self) -> PlaywrightPortalSession:
        context = await self._browser.new_context(
            user_agent=self._settings.user_agent,
            viewport={"width": self._settings.viewport_width, "height": self._settings.viewport_height},
            locale=self._settings.locale,
            extra_http_headers={"Accept-Language": "pt-BR,pt;q=0.9"},
        )
        try:
            await context.add_init_script(_INIT_SCRIPT)
            await context.route("**/*", _filter_request)
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return PlaywrightPortalSession(context=context, page=page, settings=self._settings)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


async def _filter_request(route: Route) -> None:
    request = route.request
    if should_block(url=request.url, resource_type=request.resource_type):
        await route.abort()
    else:
        await route.continue_()


def engine_factory(settings: AppSettings) -> EngineFactory:
    """Bind settings into the zero-argument factory the orchestrator expects."""

    async def launch() -> PlaywrightEngine:
        return await PlaywrightEngine.launch(settings)

    return launch
