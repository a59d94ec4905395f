"""Block-signature table used to recognise blocked or challenge pages.

The table is versioned and can be replaced from a YAML file, because the
markers a protected source shows tend to drift over time::

    version: 2
    signatures:
      - {pattern: "access denied", kind: access_denied}
      - {pattern: "cloudflare", kind: challenge}
"""
from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__: Sequence[str] = (
    "SignatureKind",
    "BlockSignature",
    "BlockSignatureTable",
    "DEFAULT_SIGNATURES",
    "load_signatures",
)


class SignatureKind(str, Enum):
    ACCESS_DENIED = "access_denied"
    CAPTCHA = "captcha"
    RATE_LIMIT = "rate_limit"
    MAINTENANCE = "maintenance"
    CHALLENGE = "challenge"


class BlockSignature(BaseModel):
    """One case-insensitive substring marker."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., min_length=1)
    kind: SignatureKind

    @field_validator("pattern")
    def _lower(cls, v: str) -> str:
        return v.lower()

    @property
    def is_challenge(self) -> bool:
        return self.kind is SignatureKind.CHALLENGE


class BlockSignatureTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = Field(1, ge=1)
    signatures: tuple[BlockSignature, ...] = ()

    def match(self, content: str) -> Optional[BlockSignature]:
        """Return the first signature found in *content*, or ``None``."""
        lowered = content.lower()
        for signature in self.signatures:
            if signature.pattern in lowered:
                return signature
        return None


DEFAULT_SIGNATURES = BlockSignatureTable(
    version=1,
    signatures=(
        BlockSignature(pattern="access denied", kind=SignatureKind.ACCESS_DENIED),
        BlockSignature(pattern="blocked", kind=SignatureKind.ACCESS_DENIED),
        BlockSignature(pattern="captcha", kind=SignatureKind.CAPTCHA),
        BlockSignature(pattern="rate limit", kind=SignatureKind.RATE_LIMIT),
        BlockSignature(pattern="temporarily unavailable", kind=SignatureKind.MAINTENANCE),
        BlockSignature(pattern="service unavailable", kind=SignatureKind.MAINTENANCE),
        BlockSignature(pattern="please try again", kind=SignatureKind.MAINTENANCE),
        BlockSignature(pattern="cloudflare", kind=SignatureKind.CHALLENGE),
    ),
)


def load_signatures(path: Union[str, Path]) -> BlockSignatureTable:
    """Read a signature table from YAML."""
    p = Path(path).expanduser()
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Signature table must be a mapping, got {type(data).__name__}")
    return BlockSignatureTable(**data)
