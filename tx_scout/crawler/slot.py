# tx_scout/crawler/slot.py
"""
Worker slot: one exclusive fetch channel bound to one renderer.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from tx_scout.crawler.renderer import Renderer

__all__ = ("WorkerSlot",)


class WorkerSlot:
    """Serialises page tasks on one renderer and paces its requests.

    Tasks hold the slot through :meth:`reserve`; the underlying
    :class:`asyncio.Lock` wakes waiters in FIFO order, so pages routed to the
    same slot run strictly in the order they were scheduled.
    """

    def __init__(
        self,
        index: int,
        renderer: Renderer,
        cooldown: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.index = index
        self.renderer = renderer
        self.cooldown = cooldown
        self.last_request_at: Optional[float] = None
        self.in_flight: Optional[int] = None
        self.requests = 0
        self._clock = clock
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger("TxScout")

    def __repr__(self) -> str:
        return f"WorkerSlot(index={self.index}, in_flight={self.in_flight})"

    @asynccontextmanager
    async def reserve(self, page: int) -> AsyncIterator[WorkerSlot]:
        async with self._lock:
            self.in_flight = page
            try:
                yield self
            finally:
                self.in_flight = None

    async def fetch(self, url: str, timeout: float, *, paced: bool = True) -> str:
        """Navigate the renderer to *url* and return the rendered markup.

        Must be called while the slot is reserved. With *paced* the call first
        waits until ``cooldown`` seconds have passed since the previous
        request on this slot started.
        """
        if self.in_flight is None:
            raise RuntimeError(f"slot {self.index} used without reserve()")
        if paced:
            await self._wait_for_cooldown()
        self.last_request_at = self._clock()
        self.requests += 1
        await self.renderer.navigate(url, timeout)
        return await self.renderer.content()

    async def _wait_for_cooldown(self) -> None:
        if self.last_request_at is None or self.cooldown <= 0:
            return
        wait = self.cooldown - (self._clock() - self.last_request_at)
        if wait > 0:
            await asyncio.sleep(wait)

    async def close(self) -> None:
        try:
            await self.renderer.close()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Error closing slot %d renderer: %s", self.index, exc)
