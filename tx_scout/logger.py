# === FILE: tx_scout/logger.py ===
"""Logging setup for **TxScout**.

One named logger, ``TxScout``, shared by every module::

    from tx_scout.logger import logger
    logger.info("Scraping started")

Console output goes to *stderr* so that stdout stays clean for the JSON
report; a rotating log file can be added with :func:`configure`.

Sessions log through :func:`session_logger`, which prefixes each message
with the transaction category (``[external] wave 3/50 ...``). Two sessions
run concurrently, so without the prefix their lines would be
indistinguishable.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final, MutableMapping, Tuple, Union

LOGGER_NAME: Final[str] = "TxScout"
_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_MAX_BYTES: Final[int] = 5 * 1024 * 1024
_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]


def _build_handlers(log_file: str | Path | None, fmt: str) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt)
    # stderr keeps stdout free for the JSON report
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the ``TxScout`` logger.

    Parameters
    ----------
    level
        Numeric or textual logging level (e.g. ``"DEBUG"``).
    log_file
        Optional log file, rotated at 5 MiB with three backups.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        Close and drop the current handlers before adding new ones.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        for handler in list(lg.handlers):
            lg.removeHandler(handler)
            handler.close()

    for handler in _build_handlers(log_file, log_format):
        lg.addHandler(handler)

    lg.propagate = False
    return lg


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
) -> logging.Logger:
    """Shortcut used by the CLI."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


class CategoryAdapter(logging.LoggerAdapter):
    """Prefixes every message with ``[<category>]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['category']}] {msg}", kwargs


def session_logger(category: str) -> CategoryAdapter:
    return CategoryAdapter(logging.getLogger(LOGGER_NAME), {"category": category})


logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "session_logger", "CategoryAdapter", "LOGGER_NAME"]
