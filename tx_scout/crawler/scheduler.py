# === FILE: tx_scout/crawler/scheduler.py ===
"""
Wave scheduler: routes listing pages to worker slots, retries them inline
and re-attempts whatever is still failed once the main pass is over.
"""
from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence, Set

from tx_scout.aggregator import ResultAggregator
from tx_scout.bypass import BypassState
from tx_scout.config import RetryBackoff, SessionConfig, WaveDelays
from tx_scout.crawler.models import (
    Classification,
    ContentResult,
    PageOutcome,
    PageStatus,
    PageTask,
    wave_bounds,
)
from tx_scout.crawler.slot import WorkerSlot
from tx_scout.exceptions import (
    BlockedContent,
    DetectionFailure,
    InsufficientContent,
    NavigationFailure,
    PageTimeout,
    RetryExhausted,
    ScrapeError,
)
from tx_scout.logger import session_logger
from tx_scout.parser.extractor import (
    check_content,
    classify_content,
    detect_total_pages,
    extract_hashes,
)
from tx_scout.parser.signatures import DEFAULT_SIGNATURES, BlockSignatureTable

__all__ = ("PageScheduler", "wave_delay", "backoff_delay", "classify_error")

#: wave error counts strictly above these thresholds widen the next delay
HIGH_ERROR_THRESHOLD = 5
MODERATE_ERROR_THRESHOLD = 2


def wave_delay(errors_in_wave: int, delays: WaveDelays) -> float:
    """Pause before the next wave, chosen from the previous wave's failures."""
    if errors_in_wave > HIGH_ERROR_THRESHOLD:
        return delays.high
    if errors_in_wave > MODERATE_ERROR_THRESHOLD:
        return delays.moderate
    return delays.base


def backoff_delay(error: BaseException, attempt: int, policy: RetryBackoff) -> float:
    """Delay before inline attempt ``attempt + 1``.

    Aborted requests and timeouts correlate with rate limiting and get the
    longest schedule; content problems the middle one.
    """
    if isinstance(error, PageTimeout) or (isinstance(error, NavigationFailure) and error.aborted):
        return min(policy.network_step * attempt, policy.network_cap)
    if isinstance(error, (InsufficientContent, BlockedContent)):
        return min(policy.content_step * attempt, policy.content_cap)
    return min(policy.other_step * attempt, policy.other_cap)


def classify_error(error: Optional[BaseException]) -> Classification:
    if isinstance(error, InsufficientContent):
        return Classification.INSUFFICIENT
    if isinstance(error, BlockedContent):
        return Classification.BLOCKED
    return Classification.TRANSIENT_ERROR


class PageScheduler:
    """Routes pages to worker slots and drives them in waves.

    Page ``p`` always goes to slot ``(p - 1) % max_windows``. Each wave holds
    exactly ``max_windows`` pages, so every slot gets one task per wave; the
    next wave starts once every task of the current one has settled.
    """

    def __init__(
        self,
        config: SessionConfig,
        slots: Sequence[WorkerSlot],
        aggregator: ResultAggregator,
        signatures: BlockSignatureTable = DEFAULT_SIGNATURES,
        bypass_state: Optional[BypassState] = None,
    ) -> None:
        if len(slots) != config.max_windows:
            raise ValueError(f"expected {config.max_windows} slots, got {len(slots)}")
        self.config = config
        self.slots = list(slots)
        self.aggregator = aggregator
        self.signatures = signatures
        self.bypass_state = bypass_state
        self.tasks: Dict[int, PageTask] = {}
        self.in_flight: Set[int] = set()
        self.wave_errors: List[int] = []
        self.logger = session_logger(config.category)

    def slot_for(self, page: int) -> WorkerSlot:
        return self.slots[(page - 1) % len(self.slots)]

    # ------------------------------------------------------------------ #
    # Detection                                                          #
    # ------------------------------------------------------------------ #

    async def detect_total_pages(self) -> int:
        """Fetch page 1 through slot 0 and read its pagination marker."""
        slot = self.slots[0]
        url = self.config.page_url(1)
        try:
            async with slot.reserve(1):
                raw = await asyncio.wait_for(
                    slot.fetch(url, self.config.request_timeout),
                    timeout=self.config.task_timeout,
                )
            content = self._checked(classify_content(1, raw, self.signatures, self.config.min_content_length))
        except (ScrapeError, asyncio.TimeoutError) as exc:
            raise DetectionFailure(f"could not load page 1 for detection: {exc}") from exc
        total = detect_total_pages(content)
        self.logger.info("detected %d pages", total)
        return total

    # ------------------------------------------------------------------ #
    # Main pass                                                          #
    # ------------------------------------------------------------------ #

    async def run(self, total_pages: int) -> None:
        waves = list(wave_bounds(total_pages, len(self.slots)))
        for number, (first, last) in enumerate(waves, start=1):
            tasks = [self._task(page) for page in range(first, last + 1)]
            outcomes = await self._gather(tasks, attempts=self.config.max_task_retries, paced=True)
            errors = sum(1 for outcome in outcomes if not outcome.succeeded)
            self.wave_errors.append(errors)
            self.logger.info("wave %d/%d: pages %d-%d, %d errors", number, len(waves), first, last, errors)
            if number == len(waves):
                break
            delay = wave_delay(errors, self.config.wave_delays)
            if delay > self.config.wave_delays.base:
                self.logger.info("%d errors in wave, delaying next wave by %.0f ms", errors, delay * 1000)
            await asyncio.sleep(delay)

    # ------------------------------------------------------------------ #
    # Retry pass                                                         #
    # ------------------------------------------------------------------ #

    async def retry_failed(self) -> List[int]:
        """Attempt every failed page once more; return the pages still lost."""
        await self.aggregator.join()
        pages = self.aggregator.claim_failed()
        if not pages:
            return []
        self.logger.info("retrying %d failed pages: %s", len(pages), ", ".join(map(str, pages)))
        tasks = [self._task(page) for page in pages]
        outcomes = await self._gather(tasks, attempts=1, paced=False)
        await self.aggregator.join()
        recovered = sum(1 for outcome in outcomes if outcome.succeeded)
        self.logger.info("retry completed: %d/%d pages recovered", recovered, len(pages))
        dropped = self.aggregator.failed_pages
        if dropped:
            self.logger.warning(
                "permanently dropped %d pages: %s",
                len(dropped), ", ".join(map(str, dropped)),
            )
        return dropped

    # ------------------------------------------------------------------ #
    # Page tasks                                                         #
    # ------------------------------------------------------------------ #

    def _task(self, page: int) -> PageTask:
        task = self.tasks.get(page)
        if task is None:
            task = PageTask(page_number=page, assigned_slot=(page - 1) % len(self.slots))
            self.tasks[page] = task
        else:
            task.status = PageStatus.PENDING
        return task

    async def _gather(self, tasks: Iterable[PageTask], *, attempts: int, paced: bool) -> List[PageOutcome]:
        tasks = list(tasks)
        results = await asyncio.gather(
            *(self._run_task(task, attempts=attempts, paced=paced) for task in tasks),
            return_exceptions=True,
        )
        outcomes: List[PageOutcome] = []
        for task, result in zip(tasks, results):
            if isinstance(result, PageOutcome):
                outcomes.append(result)
                continue
            self.logger.error("Page %d: unexpected error: %r", task.page_number, result)
            outcome = self._finish(task, Classification.TRANSIENT_ERROR, error=repr(result))
            await self.aggregator.submit(outcome)
            outcomes.append(outcome)
        return outcomes

    async def _run_task(self, task: PageTask, *, attempts: int, paced: bool) -> PageOutcome:
        slot = self.slot_for(task.page_number)
        # the hard timeout starts once the slot is held, queueing behind
        # earlier pages of the same slot does not count against it
        async with slot.reserve(task.page_number):
            try:
                outcome = await asyncio.wait_for(
                    self._attempt_page(task, slot, attempts=attempts, paced=paced),
                    timeout=self.config.task_timeout,
                )
            except asyncio.TimeoutError:
                # wait_for has cancelled the fetch; the slot is released below
                self.logger.warning(
                    "Page %d: task timeout after %.1fs (attempt %d, classification=%s)",
                    task.page_number, self.config.task_timeout, task.attempts,
                    Classification.TRANSIENT_ERROR.value,
                )
                outcome = self._finish(task, Classification.TRANSIENT_ERROR, error="task timeout")
        await self.aggregator.submit(outcome)
        return outcome

    async def _attempt_page(
        self, task: PageTask, slot: WorkerSlot, *, attempts: int, paced: bool
    ) -> PageOutcome:
        page = task.page_number
        url = self.config.page_url(page)
        last_error: Optional[ScrapeError] = None

        task.status = PageStatus.IN_FLIGHT
        self.in_flight.add(page)
        for attempt in range(1, attempts + 1):
            task.attempts += 1
            try:
                raw = await slot.fetch(url, self.config.request_timeout, paced=paced)
                content = self._checked(
                    classify_content(page, raw, self.signatures, self.config.min_content_length)
                )
            except ScrapeError as exc:
                last_error = exc
                self.logger.warning(
                    "Page %d attempt %d/%d failed (classification=%s): %s",
                    page, attempt, attempts, classify_error(exc).value, exc,
                )
                if attempt < attempts:
                    await asyncio.sleep(backoff_delay(exc, attempt, self.config.retry_backoff))
                continue
            hashes = extract_hashes(content, self.config.max_matches, page=page)
            self.logger.debug("Page %d: %d hashes", page, len(hashes))
            return self._finish(task, Classification.OK, hashes=hashes)

        exhausted = RetryExhausted(page, last_error)
        self.logger.error("%s", exhausted)
        return self._finish(task, classify_error(last_error), error=str(exhausted))

    def _checked(self, result: ContentResult) -> str:
        if (
            result.classification is Classification.BLOCKED
            and result.signature is not None
            and result.signature.is_challenge
            and self.bypass_state is not None
        ):
            self.bypass_state.clear()
        return check_content(result)

    def _finish(
        self,
        task: PageTask,
        classification: Classification,
        *,
        hashes: frozenset[str] = frozenset(),
        error: Optional[str] = None,
    ) -> PageOutcome:
        self.in_flight.discard(task.page_number)
        task.status = PageStatus.SUCCEEDED if classification is Classification.OK else PageStatus.FAILED
        return PageOutcome(
            page_number=task.page_number,
            classification=classification,
            hashes=hashes,
            error=error,
            attempts=task.attempts,
        )
