"""Playwright-based headless browser renderer.

Optional: installed with the ``browser`` extra::

    pip install tx_scout[browser]
    playwright install chromium

One Chromium instance is launched per factory (i.e. per session); every
worker slot gets its own browser context and page, so cookies and the
challenge clearance stay isolated per slot.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tx_scout.crawler.renderer import OUTER_HTML
from tx_scout.exceptions import NavigationFailure, PageTimeout

logger = logging.getLogger("TxScout")

_ABORT_MARKERS = ("ERR_ABORTED", "net::ERR_CONNECTION_RESET", "Target closed")


class BrowserRenderer:
    """One browser page owned by one worker slot."""

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        *,
        settle_delay: float,
        content_timeout: float,
    ) -> None:
        self.context = context
        self.page = page
        self.settle_delay = settle_delay
        self.content_timeout = content_timeout

    async def navigate(self, url: str, timeout: float) -> None:
        try:
            await self.page.goto(url, timeout=timeout * 1000, wait_until="domcontentloaded")
        except PlaywrightTimeoutError as exc:
            raise PageTimeout(f"Page load timeout after {timeout:.1f}s") from exc
        except PlaywrightError as exc:
            message = str(exc)
            aborted = any(marker in message for marker in _ABORT_MARKERS)
            raise NavigationFailure(f"Navigation failed: {message}", aborted=aborted) from exc
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)

    async def evaluate(self, script: str) -> Any:
        try:
            return await asyncio.wait_for(self.page.evaluate(script), timeout=self.content_timeout)
        except asyncio.TimeoutError as exc:
            raise PageTimeout("HTML extraction timeout") from exc
        except PlaywrightError as exc:
            raise NavigationFailure(f"JS execution failed: {exc}") from exc

    async def content(self) -> str:
        html = await self.evaluate(OUTER_HTML)
        return html if isinstance(html, str) else ""

    async def close(self) -> None:
        try:
            await self.page.close()
        finally:
            await self.context.close()


class BrowserRendererFactory:
    """Launches Chromium lazily and hands out one page per slot."""

    def __init__(
        self,
        *,
        user_agent: str,
        headless: bool = True,
        settle_delay: float = 0.8,
        content_timeout: float = 5.0,
    ) -> None:
        self.user_agent = user_agent
        self.headless = headless
        self.settle_delay = settle_delay
        self.content_timeout = content_timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=["--disable-dev-shm-usage", "--no-sandbox", "--disable-gpu", "--mute-audio"],
                )
                logger.debug("Chromium launched (headless=%s)", self.headless)
            return self._browser

    async def create(self) -> BrowserRenderer:
        browser = await self._ensure_browser()
        context = await browser.new_context(user_agent=self.user_agent)
        # images are never needed for hash extraction
        await context.route("**/*.{png,jpg,jpeg,gif,svg,webp}", lambda route: route.abort())
        page = await context.new_page()
        return BrowserRenderer(
            context,
            page,
            settle_delay=self.settle_delay,
            content_timeout=self.content_timeout,
        )

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


__all__ = ["BrowserRenderer", "BrowserRendererFactory"]
