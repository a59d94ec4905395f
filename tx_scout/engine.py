# File: tx_scout/engine.py
"""tx_scout.engine: сессии по категориям и общий запуск."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, List, Optional

from tx_scout.aggregator import ResultAggregator, ScrapeReport, SessionResult
from tx_scout.bypass import BypassState
from tx_scout.config import ScraperConfig, SessionConfig
from tx_scout.crawler.renderer import RendererFactory, build_renderer_factory
from tx_scout.crawler.scheduler import PageScheduler
from tx_scout.crawler.slot import WorkerSlot
from tx_scout.exceptions import DetectionFailure, RendererPoolError
from tx_scout.logger import logger, session_logger
from tx_scout.parser.signatures import DEFAULT_SIGNATURES, BlockSignatureTable

__all__ = ["Session", "run_session", "run_scraper", "start_scrape", "ensure_bypass"]

ChallengeHook = Callable[[str], Awaitable[None]]
FactoryBuilder = Callable[[ScraperConfig], RendererFactory]


class Session:
    """Один логический проход: одна цель, одна категория, свой пул слотов."""

    def __init__(
        self,
        config: SessionConfig,
        factory: RendererFactory,
        signatures: BlockSignatureTable = DEFAULT_SIGNATURES,
        bypass_state: Optional[BypassState] = None,
    ) -> None:
        self.config = config
        self.factory = factory
        self.signatures = signatures
        self.bypass_state = bypass_state
        self.logger = session_logger(config.category)

    async def _create_slots(self) -> List[WorkerSlot]:
        slots: List[WorkerSlot] = []
        try:
            for index in range(self.config.max_windows):
                renderer = await self.factory.create()
                slots.append(WorkerSlot(index, renderer, self.config.slot_cooldown))
        except Exception as exc:
            await asyncio.gather(*(slot.close() for slot in slots))
            raise RendererPoolError(
                f"[{self.config.category}] could not create renderer {len(slots)}: {exc}"
            ) from exc
        return slots

    async def _close(self, slots: List[WorkerSlot]) -> None:
        await asyncio.gather(*(slot.close() for slot in slots))
        try:
            await self.factory.close()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("error closing renderer factory: %s", exc)

    async def run(self) -> SessionResult:
        """Детекция, волны, повторный проход; возвращает SessionResult."""
        cfg = self.config
        start = time.monotonic()
        self.logger.info(
            "start: target=%s windows=%d pages<=%d", cfg.target_address, cfg.max_windows, cfg.total_pages
        )
        try:
            slots = await self._create_slots()
        except RendererPoolError:
            await self.factory.close()
            raise
        try:
            async with ResultAggregator() as aggregator:
                scheduler = PageScheduler(cfg, slots, aggregator, self.signatures, self.bypass_state)
                try:
                    detected = await scheduler.detect_total_pages()
                except DetectionFailure as exc:
                    self.logger.warning("%s; falling back to 1 page", exc)
                    detected = 1
                effective = min(cfg.total_pages, detected)

                await scheduler.run(effective)
                if cfg.auto_retry_failed:
                    await scheduler.retry_failed()
                await aggregator.join()

                result = SessionResult(
                    category=cfg.category,
                    hashes=aggregator.hashes,
                    elapsed_seconds=round(time.monotonic() - start, 2),
                    pages_total=effective,
                    pages_succeeded=len(aggregator.succeeded_pages),
                    dropped_pages=aggregator.failed_pages,
                )
        finally:
            await self._close(slots)

        self.logger.info(
            "done: %d hashes from %d/%d pages in %.2f s (%d dropped)",
            len(result.hashes), result.pages_succeeded, result.pages_total,
            result.elapsed_seconds, len(result.dropped_pages),
        )
        return result


async def run_session(
    config: SessionConfig,
    factory: RendererFactory,
    signatures: BlockSignatureTable = DEFAULT_SIGNATURES,
    bypass_state: Optional[BypassState] = None,
) -> SessionResult:
    return await Session(config, factory, signatures, bypass_state).run()


async def ensure_bypass(state: BypassState, url: str, challenge: Optional[ChallengeHook]) -> None:
    """Проверить флаг прохождения челленджа и при необходимости вызвать хук."""
    if state.is_passed():
        logger.info("Challenge status: previously passed (%s)", state.passed_at())
        return
    if challenge is None:
        logger.warning("Challenge status: not passed and no challenge handler given; continuing")
        return
    logger.info("Challenge status: need to check, opening %s", url)
    try:
        await challenge(url)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Challenge handler failed, proceeding anyway: %s", exc)
    state.mark_passed()


async def run_scraper(
    target: str,
    max_windows: Optional[int] = None,
    total_pages: Optional[int] = None,
    *,
    config: Optional[ScraperConfig] = None,
    factory_builder: FactoryBuilder = build_renderer_factory,
    challenge: Optional[ChallengeHook] = None,
) -> ScrapeReport:
    """Запускает по сессии на каждую категорию параллельно и собирает отчёт.

    Списки категорий не дедуплицируются между собой.
    """
    config = config or ScraperConfig()
    overrides = {
        name: value
        for name, value in (("max_windows", max_windows), ("total_pages", total_pages))
        if value is not None
    }
    if overrides:
        config = ScraperConfig.model_validate({**config.model_dump(), **overrides})

    session_configs = [config.session_config(target, name) for name in config.categories]
    bypass = BypassState(config.bypass_state_file)
    await ensure_bypass(bypass, session_configs[0].page_url(1), challenge)

    sessions = [
        Session(cfg, factory_builder(config), config.block_signatures, bypass)
        for cfg in session_configs
    ]
    start = time.monotonic()
    results = await asyncio.gather(*(session.run() for session in sessions))
    elapsed = round(time.monotonic() - start)

    report = ScrapeReport(
        target_address=session_configs[0].target_address,
        sessions={result.category: result for result in results},
        elapsed_seconds=elapsed,
    )
    logger.info("=== PARALLEL EXECUTION SUMMARY ===")
    for name, result in report.sessions.items():
        logger.info("%s transactions: %d hashes", name, len(result.hashes))
    logger.info("Total hashes: %d", report.total_hashes)
    logger.info("Total parallel time: %d seconds (%dm %ds)", elapsed, elapsed // 60, elapsed % 60)
    return report


def start_scrape(
    config: ScraperConfig,
    target: str,
    max_windows: Optional[int] = None,
    total_pages: Optional[int] = None,
) -> ScrapeReport:
    """Синхронная обёртка для CLI."""
    logger.info("Starting scrape…")
    try:
        return asyncio.run(run_scraper(target, max_windows, total_pages, config=config))
    except Exception as exc:
        logger.error("Scraping failed: %s", exc)
        raise
