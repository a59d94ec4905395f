# tx_scout/crawler/renderer.py
"""
Renderer capability: navigate to a URL and hand back the rendered markup.

The scheduler only talks to the :class:`Renderer` protocol. Two adapters
ship with the package:

* :class:`HttpRenderer`: plain aiohttp, one ``ClientSession`` (and cookie
  jar) per worker slot; the default.
* :class:`~tx_scout.crawler.browser.BrowserRenderer`: headless Chromium via
  Playwright for sources that need script execution (``browser`` extra).

Cancelling a pending :meth:`Renderer.navigate` aborts the underlying request,
so a task that hits its hard timeout releases its slot immediately.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from aiohttp import ClientError, ClientSession, ClientTimeout

from tx_scout.config import ScraperConfig
from tx_scout.exceptions import NavigationFailure, PageTimeout, RendererError

OUTER_HTML = "document.documentElement.outerHTML"

_RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)


@runtime_checkable
class Renderer(Protocol):
    async def navigate(self, url: str, timeout: float) -> None: ...

    async def evaluate(self, script: str) -> Any: ...

    async def content(self) -> str: ...

    async def close(self) -> None: ...


@runtime_checkable
class RendererFactory(Protocol):
    async def create(self) -> Renderer: ...

    async def close(self) -> None: ...


class HttpRenderer:
    """Fetches pages with aiohttp; "rendered" markup is the response body."""

    def __init__(self, session: ClientSession) -> None:
        self.session = session
        self._html: Optional[str] = None

    async def navigate(self, url: str, timeout: float) -> None:
        self._html = None
        try:
            async with self.session.get(url, timeout=ClientTimeout(total=timeout)) as resp:
                if resp.status in _RETRY_STATUS:
                    raise NavigationFailure(f"Navigation failed: HTTP {resp.status}", aborted=resp.status == 429)
                if resp.status >= 400:
                    raise NavigationFailure(f"Navigation failed: HTTP {resp.status}")
                # bytes invalid in the declared charset become U+FFFD
                self._html = await resp.text(errors="replace")
        except asyncio.TimeoutError as exc:
            raise PageTimeout(f"Page load timeout after {timeout:.1f}s") from exc
        except ClientError as exc:
            raise NavigationFailure(f"Navigation failed: {exc}") from exc

    async def evaluate(self, script: str) -> Any:
        if script.strip() != OUTER_HTML:
            raise RendererError("HttpRenderer cannot execute scripts; use the browser renderer")
        return await self.content()

    async def content(self) -> str:
        return self._html or ""

    async def close(self) -> None:
        if not self.session.closed:
            await self.session.close()


class HttpRendererFactory:
    """Creates one independent :class:`HttpRenderer` per worker slot."""

    def __init__(self, user_agent: str) -> None:
        self.user_agent = user_agent

    async def create(self) -> HttpRenderer:
        session = ClientSession(
            headers={"User-Agent": self.user_agent},
            raise_for_status=False,
        )
        return HttpRenderer(session)

    async def close(self) -> None:
        return None


def build_renderer_factory(config: ScraperConfig) -> RendererFactory:
    """Pick the renderer adapter named by ``config.renderer``."""
    if config.renderer == "browser":
        # playwright is an optional dependency; import only when asked for
        from tx_scout.crawler.browser import BrowserRendererFactory

        return BrowserRendererFactory(
            user_agent=config.user_agent,
            headless=config.headless,
            settle_delay=config.settle_delay,
            content_timeout=config.content_timeout,
        )
    return HttpRendererFactory(user_agent=config.user_agent)


__all__ = [
    "OUTER_HTML",
    "Renderer",
    "RendererFactory",
    "HttpRenderer",
    "HttpRendererFactory",
    "build_renderer_factory",
]
