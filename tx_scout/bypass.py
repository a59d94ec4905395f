"""Persisted "anti-bot challenge already passed" flag.

The flag is a small file holding the ISO timestamp of the moment the
challenge was cleared. Its presence lets a run skip the interactive
challenge step; the scheduler clears it when the challenge page shows up
again.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from tx_scout.logger import logger

__all__ = ["BypassState"]


class BypassState:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def is_passed(self) -> bool:
        return self.path.is_file()

    def passed_at(self) -> Optional[datetime]:
        """Timestamp stored in the flag file, ``None`` if absent or unreadable."""
        if not self.is_passed():
            return None
        try:
            return datetime.fromisoformat(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError) as exc:
            logger.debug("Unreadable bypass state %s: %s", self.path, exc)
            return None

    def mark_passed(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(datetime.now(timezone.utc).isoformat(), encoding="utf-8")
        except OSError as exc:
            logger.error("Error marking challenge as passed: %s", exc)

    def clear(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
                logger.warning("Challenge page detected - clearing bypass state for next run")
        except OSError as exc:
            logger.error("Error clearing bypass state: %s", exc)
