"""Page content providers backed by a headless browser."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
CURRENCY_MENU_SELECTORS = (
    "[data-testid*='currency']",
    "[class*='currency'] button",
    "button[class*='currency']",
    "[aria-label*='Currency']",
)


class ProviderStartupError(RuntimeError):
    """Raised when the browser session cannot be started at all."""


class PageContentProvider(Protocol):
    """Single navigable session that yields rendered page content."""

    async def navigate(self, url: str) -> None:
        ...

    async def wait_stable(self, ms: int) -> None:
        ...

    async def content(self) -> str:
        ...

    async def switch_currency(self, currency: str) -> bool:
        ...


class PlaywrightPageProvider:
    """One Chromium tab reused for every date of a run."""

    def __init__(
        self,
        navigation_timeout_ms: int = 60_000,
        headless: bool = True,
        menu_selectors: Sequence[str] = CURRENCY_MENU_SELECTORS,
    ):
        self.navigation_timeout_ms = navigation_timeout_ms
        self.headless = headless
        self.menu_selectors = tuple(menu_selectors)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> "PlaywrightPageProvider":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=LAUNCH_ARGS
            )
            self._context = await self._browser.new_context(user_agent=USER_AGENT)
            self._page = await self._context.new_page()
        except PlaywrightError as exc:
            await self.close()
            raise ProviderStartupError(f"Could not start browser: {exc}") from exc
        self._page.on("console", self._log_console)
        logger.info("Browser session started")

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session is not started")
        return self._page

    async def navigate(self, url: str) -> None:
        logger.debug("Navigating to %s", url)
        await self.page.goto(
            url, wait_until="networkidle", timeout=self.navigation_timeout_ms
        )
        try:
            await self.page.wait_for_selector("body", timeout=5_000)
        except PlaywrightTimeoutError:
            logger.warning("Page body did not appear in time; continuing with partial content")

    async def wait_stable(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def content(self) -> str:
        return await self.page.content()

    async def switch_currency(self, currency: str) -> bool:
        """Pick ``currency`` from the site's currency menu, best effort."""
        for selector in self.menu_selectors:
            menu = self.page.locator(selector).first
            try:
                if not await menu.count():
                    continue
                await menu.click(timeout=3_000)
                await self.page.get_by_text(currency, exact=False).first.click(timeout=3_000)
                await self.page.wait_for_load_state(
                    "networkidle", timeout=self.navigation_timeout_ms
                )
            except PlaywrightError as exc:
                logger.info("Currency switch via %s failed: %s", selector, exc)
                continue
            logger.info("Switched display currency to %s", currency)
            return True
        return False

    @staticmethod
    def _log_console(message) -> None:
        if message.type in ("log", "error"):
            logger.debug("[browser] %s", message.text)
