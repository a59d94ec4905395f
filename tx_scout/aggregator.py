# File: tx_scout/aggregator.py
"""tx_scout.aggregator: накопитель хешей и итоговые отчёты сессий."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Set

from tx_scout.crawler.models import PageOutcome

__all__ = ["ResultAggregator", "SessionResult", "ScrapeReport"]


class ResultAggregator:
    """Единственный владелец множества хешей и реестра упавших страниц.

    Задачи страниц только отправляют PageOutcome в очередь; менять состояние
    может лишь задача-потребитель, поэтому блокировки не нужны.
    """

    def __init__(self) -> None:
        self._hashes: Dict[str, None] = {}
        self._failed: Set[int] = set()
        self._succeeded: Set[int] = set()
        self._queue: asyncio.Queue[PageOutcome] = asyncio.Queue()
        self._consumer: Optional[asyncio.Task[None]] = None
        self.logger = logging.getLogger("TxScout")

    async def __aenter__(self) -> ResultAggregator:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume(), name="result-aggregator")

    async def stop(self) -> None:
        if self._consumer is None:
            return
        if not self._consumer.done():
            await self._queue.join()
        self._consumer.cancel()
        await asyncio.gather(self._consumer, return_exceptions=True)
        self._consumer = None

    async def submit(self, outcome: PageOutcome) -> None:
        await self._queue.put(outcome)

    async def join(self) -> None:
        """Дождаться, пока все отправленные результаты будут учтены."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            outcome = await self._queue.get()
            try:
                self.record(outcome)
            finally:
                self._queue.task_done()

    def record(self, outcome: PageOutcome) -> None:
        """Учесть один результат страницы (вызывается только потребителем)."""
        page = outcome.page_number
        if outcome.succeeded:
            for tx_hash in outcome.hashes:
                self._hashes.setdefault(tx_hash, None)
            self._failed.discard(page)
            self._succeeded.add(page)
        elif page not in self._succeeded:
            self._failed.add(page)

    def claim_failed(self) -> List[int]:
        """Забрать страницы из реестра для повторного прохода.

        Вызывать только после join(): страницы переходят «в полёт» и
        вернутся в реестр, если повтор снова не удастся.
        """
        pages = sorted(self._failed)
        self._failed.clear()
        return pages

    @property
    def hashes(self) -> List[str]:
        """Хеши в порядке первого появления."""
        return list(self._hashes)

    @property
    def failed_pages(self) -> List[int]:
        return sorted(self._failed)

    @property
    def succeeded_pages(self) -> List[int]:
        return sorted(self._succeeded)

    def __len__(self) -> int:
        return len(self._hashes)


@dataclass(slots=True)
class SessionResult:
    """Итог одной сессии (одной категории транзакций)."""

    category: str
    hashes: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    pages_total: int = 0
    pages_succeeded: int = 0
    dropped_pages: List[int] = field(default_factory=list)


@dataclass(slots=True)
class ScrapeReport:
    """Результаты параллельных сессий по всем категориям."""

    target_address: str
    sessions: Dict[str, SessionResult] = field(default_factory=dict)
    elapsed_seconds: int = 0

    def _nth(self, index: int) -> List[str]:
        results = list(self.sessions.values())
        return list(results[index].hashes) if len(results) > index else []

    @property
    def primary_results(self) -> List[str]:
        return self._nth(0)

    @property
    def secondary_results(self) -> List[str]:
        return self._nth(1)

    @property
    def dropped_pages(self) -> Dict[str, List[int]]:
        return {name: list(s.dropped_pages) for name, s in self.sessions.items()}

    @property
    def total_hashes(self) -> int:
        # без дедупликации между категориями
        return sum(len(s.hashes) for s in self.sessions.values())

    def as_dict(self) -> Dict[str, object]:
        return {
            "target_address": self.target_address,
            "elapsed_seconds": self.elapsed_seconds,
            "primary_results": self.primary_results,
            "secondary_results": self.secondary_results,
            "sessions": {name: asdict(s) for name, s in self.sessions.items()},
        }

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление отчёта."""
        return json.dumps(self.as_dict(), ensure_ascii=False, indent=2 if pretty else None)
