# tx_scout/crawler/models.py
"""
Data models for the TxScout page scheduler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, FrozenSet, Iterator, Optional, Tuple

if TYPE_CHECKING:
    from tx_scout.parser.signatures import BlockSignature


class PageStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Classification(str, Enum):
    """Outcome bucket assigned to fetched content before extraction."""

    OK = "ok"
    INSUFFICIENT = "insufficient"
    BLOCKED = "blocked"
    TRANSIENT_ERROR = "transient_error"


@dataclass(slots=True)
class PageTask:
    """One fetch+extract cycle for a single page number."""

    page_number: int
    assigned_slot: int
    status: PageStatus = PageStatus.PENDING
    attempts: int = 0

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError(f"page_number must be positive, got {self.page_number}")


@dataclass(slots=True)
class ContentResult:
    """Raw markup of one attempt together with its classification."""

    page_number: int
    raw_content: Optional[str]
    classification: Classification
    signature: Optional["BlockSignature"] = None


@dataclass(slots=True)
class PageOutcome:
    """Terminal result of a page task as delivered to the aggregator."""

    page_number: int
    classification: Classification
    hashes: FrozenSet[str] = field(default_factory=frozenset)
    error: Optional[str] = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.classification is Classification.OK


def wave_bounds(total_pages: int, width: int) -> Iterator[Tuple[int, int]]:
    """Yield inclusive ``(first, last)`` page ranges of at most *width* pages."""
    if width < 1:
        raise ValueError("width must be >= 1")
    first = 1
    while first <= total_pages:
        last = min(first + width - 1, total_pages)
        yield first, last
        first = last + 1


__all__ = [
    "PageStatus",
    "Classification",
    "PageTask",
    "ContentResult",
    "PageOutcome",
    "wave_bounds",
]
