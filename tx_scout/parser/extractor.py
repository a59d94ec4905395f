"""Hash extraction and content classification for listing pages.

* :func:`extract_hashes`: pattern scan for transaction links, deduplicated
  within the page and capped so malformed markup cannot run away.
* :func:`classify_content`: Ok / Insufficient / Blocked verdict applied
  before extraction is attempted.
* :func:`detect_total_pages`: reads the pagination widget of page 1.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Optional

from bs4 import BeautifulSoup

from tx_scout.crawler.models import Classification, ContentResult
from tx_scout.exceptions import BlockedContent, InsufficientContent
from tx_scout.parser.signatures import DEFAULT_SIGNATURES, BlockSignatureTable

__all__: Sequence[str] = (
    "HASH_LINK_RE",
    "MAX_MATCHES",
    "MIN_CONTENT_LENGTH",
    "extract_hashes",
    "classify_content",
    "check_content",
    "detect_total_pages",
)

logger = logging.getLogger("TxScout")

HASH_LINK_RE = re.compile(r'href="[^"]*/tx/(0x[a-fA-F0-9]{64})"')
MAX_MATCHES = 10_000
MIN_CONTENT_LENGTH = 500

_PAGE_OF_RE = re.compile(r"Page\s+\d+\s+of\s+(\d+)", re.IGNORECASE)
_PAGE_PARAM_RE = re.compile(r"[?&]p=(\d+)")


def extract_hashes(content: str, max_matches: int = MAX_MATCHES, *, page: Optional[int] = None) -> frozenset[str]:
    """Return the distinct transaction hashes linked from *content*.

    Scanning stops after *max_matches* matches; whatever was collected up to
    that point is still returned.
    """
    found: set[str] = set()
    for count, match in enumerate(HASH_LINK_RE.finditer(content), start=1):
        found.add(match.group(1))
        if count >= max_matches:
            logger.warning("Page %s: too many matches (%d), stopping scan early", page, count)
            break
    return frozenset(found)


def classify_content(
    page: int,
    content: Optional[str],
    signatures: BlockSignatureTable = DEFAULT_SIGNATURES,
    min_length: int = MIN_CONTENT_LENGTH,
) -> ContentResult:
    if not content or len(content) < min_length:
        return ContentResult(page, content, Classification.INSUFFICIENT)
    signature = signatures.match(content)
    if signature is not None:
        return ContentResult(page, content, Classification.BLOCKED, signature)
    return ContentResult(page, content, Classification.OK)


def check_content(result: ContentResult) -> str:
    """Return the markup of an OK result, raise the matching error otherwise."""
    if result.classification is Classification.INSUFFICIENT:
        length = len(result.raw_content or "")
        raise InsufficientContent(f"insufficient content ({length} chars)", length=length)
    if result.classification is Classification.BLOCKED:
        if result.signature is None:
            raise ValueError(f"page {result.page_number}: blocked result carries no signature")
        raise BlockedContent(
            f"blocked: {result.signature.pattern!r} detected", signature=result.signature
        )
    return result.raw_content or ""


def detect_total_pages(content: str) -> int:
    """Total page count advertised by a listing page, 1 if none is found.

    Looks for a "Page X of Y" marker, first in the pagination widget and then
    anywhere in the text; falls back to the highest ``p=`` referenced by a
    page-link anchor (the "Last" button).
    """
    soup = BeautifulSoup(content, "html.parser")

    for node in soup.select(".page-link.text-nowrap"):
        match = _PAGE_OF_RE.search(node.get_text(" ", strip=True))
        if match:
            return max(1, int(match.group(1)))

    match = _PAGE_OF_RE.search(soup.get_text(" ", strip=True))
    if match:
        return max(1, int(match.group(1)))

    highest = 0
    for anchor in soup.select("a.page-link[href]"):
        href = anchor.get("href")
        if not isinstance(href, str):
            continue
        param = _PAGE_PARAM_RE.search(href)
        if param:
            highest = max(highest, int(param.group(1)))
    return highest or 1
