"""Headed Chromium session driven by Playwright for page reading and simple actions."""

import logging
from pathlib import Path
from urllib.parse import quote_plus

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 800}
NAVIGATION_TIMEOUT_MS = 30_000
CLICK_SETTLE_TIMEOUT_MS = 5_000


class BrowserSession:
    """One lazily launched browser with a single page, reused across tool calls.

    The window is visible by default so the user can watch what the chair does.
    """

    def __init__(self, headless: bool = False) -> None:
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def is_open(self) -> bool:
        return self._page is not None

    async def _ensure_page(self) -> Page:
        if self._page is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            context = await self._browser.new_context(viewport=VIEWPORT)
            self._page = await context.new_page()
            logger.info("Browser started (headless=%s)", self.headless)
        return self._page

    async def open(self, url: str) -> str:
        """Navigate to ``url`` and return the visible text of the page."""
        page = await self._ensure_page()
        await page.goto(url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
        return await page.inner_text("body")

    async def search(self, query: str) -> str:
        page = await self._ensure_page()
        await page.goto(
            f"https://html.duckduckgo.com/html/?q={quote_plus(query)}",
            wait_until="networkidle",
            timeout=NAVIGATION_TIMEOUT_MS,
        )
        blocks = []
        for item in await page.query_selector_all(".result__body"):
            title_el = await item.query_selector(".result__a")
            if title_el is None:
                continue
            title = (await title_el.inner_text()).strip()
            href = await title_el.get_attribute("href")
            snippet_el = await item.query_selector(".result__snippet")
            snippet = (await snippet_el.inner_text()).strip() if snippet_el else ""
            if title and href:
                blocks.append(f"### {title}\nURL: {href}\n{snippet}\n")
        if not blocks:
            return "No results found"
        return f'Search Results for "{query}":\n\n' + "\n".join(blocks)

    async def type(self, selector: str, text: str) -> str:
        if self._page is None:
            return "No page open"
        await self._page.type(selector, text)
        return f'Typed "{text}" into {selector}'

    async def click(self, selector: str) -> str:
        if self._page is None:
            return "No page open"
        await self._page.click(selector)
        try:
            await self._page.wait_for_load_state("networkidle", timeout=CLICK_SETTLE_TIMEOUT_MS)
        except PlaywrightError:
            logger.debug("No navigation settled after clicking %s", selector)
        return f"Clicked {selector}"

    async def screenshot(self, path: Path) -> str:
        if self._page is None:
            return "No page open"
        path.parent.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=str(path))
        return f"Screenshot saved to {path}"

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = None
        self._browser = None
        self._page = None
