# File: tests/conftest.py
import asyncio
import re
from typing import Dict, List, Optional, Tuple, Union

import pytest
import pytest_asyncio

from tx_scout.aggregator import ResultAggregator
from tx_scout.config import RetryBackoff, SessionConfig, WaveDelays

TARGET = "0x0023A1D0106185cBcC81b253a267b9d05015E0b7"

_FILLER = "<p>" + "lorem ipsum dolor sit amet " * 30 + "</p>"

NO_DELAYS = WaveDelays(base=0, moderate=0, high=0)
NO_BACKOFF = RetryBackoff(
    content_step=0, content_cap=0, network_step=0, network_cap=0, other_step=0, other_cap=0
)


def tx_hash(char: str) -> str:
    return "0x" + char * 64


def page_html(hashes: List[str] = (), total_pages: Optional[int] = None, page: int = 1) -> str:
    """Listing page with one link per hash, padded well above the length threshold."""
    rows = "".join(f'<tr><td><a href="/tx/{h}">{h[:12]}</a></td></tr>' for h in hashes)
    pager = ""
    if total_pages is not None:
        pager = f'<span class="page-link text-nowrap">Page {page} of {total_pages}</span>'
    return f"<html><body><table><tbody>{rows}</tbody></table>{pager}{_FILLER}</body></html>"


Response = Union[str, BaseException]


class FakeSite:
    """Scripted responses per page number; the last response of a page repeats."""

    def __init__(
        self,
        pages: Dict[int, Union[Response, List[Response]]],
        delay: float = 0.0,
        page_delays: Optional[Dict[int, float]] = None,
    ) -> None:
        self.responses = {p: list(v) if isinstance(v, list) else [v] for p, v in pages.items()}
        self.delay = delay
        self.page_delays = page_delays or {}
        self.calls: List[Tuple[int, int]] = []

    def respond(self, page: int) -> str:
        queue = self.responses.get(page)
        if not queue:
            return ""
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def pages_called(self) -> List[int]:
        return [page for _, page in self.calls]


class FakeRenderer:
    def __init__(self, site: FakeSite, index: int) -> None:
        self.site = site
        self.index = index
        self.active = 0
        self.max_active = 0
        self.cancelled = 0
        self.closed = False
        self._html = ""

    async def navigate(self, url: str, timeout: float) -> None:
        page = int(re.search(r"[?&]p=(\d+)", url).group(1))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.site.calls.append((self.index, page))
            await asyncio.sleep(self.site.page_delays.get(page, self.site.delay))
            self._html = self.site.respond(page)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1

    async def evaluate(self, script: str) -> str:
        return self._html

    async def content(self) -> str:
        return self._html

    async def close(self) -> None:
        self.closed = True


class FakeFactory:
    def __init__(self, site: FakeSite, fail_after: Optional[int] = None) -> None:
        self.site = site
        self.fail_after = fail_after
        self.renderers: List[FakeRenderer] = []
        self.closed = False

    async def create(self) -> FakeRenderer:
        if self.fail_after is not None and len(self.renderers) >= self.fail_after:
            raise RuntimeError("no more windows")
        renderer = FakeRenderer(self.site, len(self.renderers))
        self.renderers.append(renderer)
        return renderer

    async def close(self) -> None:
        self.closed = True


def make_session_config(**overrides) -> SessionConfig:
    values = dict(
        target_address=TARGET,
        category="external",
        url_template="https://example.test/txs?tkn={target}&p={page}",
        max_windows=2,
        total_pages=4,
        request_timeout=1.0,
        task_timeout=2.0,
        slot_cooldown=0,
        wave_delays=NO_DELAYS,
        retry_backoff=NO_BACKOFF,
    )
    values.update(overrides)
    return SessionConfig(**values)


@pytest.fixture()
def session_config() -> SessionConfig:
    return make_session_config()


@pytest_asyncio.fixture
async def aggregator():
    async with ResultAggregator() as agg:
        yield agg
