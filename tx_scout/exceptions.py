"""Error taxonomy for TxScout.

All custom exceptions subclass ``ScrapeError`` so callers can catch the whole
hierarchy with a single ``except`` clause.

Hierarchy::

    ScrapeError
    ├── NavigationFailure        (aborted: bool)
    │   └── PageTimeout
    ├── InsufficientContent      (length: int)
    ├── BlockedContent           (signature: BlockSignature)
    ├── DetectionFailure
    ├── RetryExhausted           (page: int, last_error)
    ├── RendererError
    └── RendererPoolError

Only ``RendererPoolError`` is allowed to abort a session; everything else is
converted into a failed page by the scheduler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tx_scout.parser.signatures import BlockSignature


class ScrapeError(Exception):
    """Base class for all TxScout exceptions."""


class NavigationFailure(ScrapeError):
    """The renderer could not load the page.

    Args:
        message: Human-readable description of the failure.
        aborted: ``True`` when the request was aborted mid-flight
            (``net::ERR_ABORTED`` and friends), which usually means the
            source started rate limiting us.
    """

    def __init__(self, message: str, *, aborted: bool = False) -> None:
        super().__init__(message)
        self.aborted = aborted


class PageTimeout(NavigationFailure):
    """Navigation or markup extraction exceeded its timeout."""


class InsufficientContent(ScrapeError):
    """Rendered markup is absent or shorter than the configured minimum."""

    def __init__(self, message: str, *, length: int = 0) -> None:
        super().__init__(message)
        self.length = length


class BlockedContent(ScrapeError):
    """Rendered markup carries a known block signature."""

    def __init__(self, message: str, *, signature: "BlockSignature") -> None:
        super().__init__(message)
        self.signature = signature


class DetectionFailure(ScrapeError):
    """Total page count could not be detected."""


class RetryExhausted(ScrapeError):
    """A page failed on every inline attempt."""

    def __init__(self, page: int, last_error: Optional[BaseException] = None) -> None:
        reason = last_error if last_error is not None else "unknown error"
        super().__init__(f"page {page} failed after all attempts: {reason}")
        self.page = page
        self.last_error = last_error


class RendererError(ScrapeError):
    """The renderer was asked for something it cannot do."""


class RendererPoolError(ScrapeError):
    """Creating the renderer pool failed; nothing can be scheduled."""


__all__ = [
    "ScrapeError",
    "NavigationFailure",
    "PageTimeout",
    "InsufficientContent",
    "BlockedContent",
    "DetectionFailure",
    "RetryExhausted",
    "RendererError",
    "RendererPoolError",
]
