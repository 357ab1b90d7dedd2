"""Playwright-backed rendering session shared across a crawl."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .config import CrawlConfig

logger = logging.getLogger("brandkit_crawler.browser")

LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class RenderSession(Protocol):
    async def open(self, url: str, timeout_ms: int): ...

    async def close(self) -> None: ...


class Renderer(Protocol):
    async def launch(self) -> RenderSession: ...


class PlaywrightSession:
    """A single browser tab reused for every page of a crawl."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        wait_after_load: float,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._wait_after_load = wait_after_load

    async def open(self, url: str, timeout_ms: int) -> Page:
        logger.info("Loading %s", url)
        await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        if self._wait_after_load:
            # Give client-side rendering a moment to settle.
            await self._page.wait_for_timeout(int(self._wait_after_load * 1000))
        return self._page

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


class PlaywrightRenderer:
    """Launches headless Chromium configured from a ``CrawlConfig``."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

    async def launch(self) -> PlaywrightSession:
        playwright = await async_playwright().start()
        browser: Optional[Browser] = None
        try:
            browser = await playwright.chromium.launch(
                headless=self.config.headless, args=LAUNCH_ARGS
            )
            context = await browser.new_context(
                user_agent=self.config.user_agent,
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
            )
            page = await context.new_page()
            page.set_default_timeout(self.config.navigation_timeout_ms)
        except Exception:
            if browser is not None:
                await browser.close()
            await playwright.stop()
            raise
        return PlaywrightSession(
            playwright, browser, context, page, self.config.wait_after_load
        )
