"""
Logging helpers.

The library itself only creates module loggers; handlers are attached
by the command line front-end (or by the embedding application).
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

from circuit3d.config import LOG_LEVEL_ENV

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def parse_log_level(level: str | int) -> int:
    if isinstance(level, int):
        return int(level)
    value = str(level).strip().upper()
    if not value:
        return logging.INFO
    return int(getattr(logging, value, logging.INFO))


def setup_logging(*, log_level: str | int = "WARNING", log_file: Optional[str | Path] = None) -> logging.Logger:
    """
    Configure the ``circuit3d`` logger to write to stderr (and optionally a file).

    ``CIRCUIT3D_LOG_LEVEL`` overrides ``log_level``.  Idempotent: a second
    call only adjusts the level.
    """
    logger = logging.getLogger("circuit3d")
    level = parse_log_level(os.environ.get(LOG_LEVEL_ENV) or log_level)
    logger.setLevel(level)

    if getattr(logger, "_circuit3d_configured", False):
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    stream.setLevel(level)
    logger.addHandler(stream)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path), encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    logging.captureWarnings(True)
    logger._circuit3d_configured = True  # type: ignore[attr-defined]
    return logger


class LogOnce:
    """
    Logs at most once per ``key`` for the lifetime of this object.

    Keeps repeated failures of the same model reference from flooding the
    log during batch conversions.  Each conversion context owns one.
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def __call__(
        self,
        logger: logging.Logger,
        key: str,
        level: int,
        msg: str,
        *args,
        exc_info: bool | BaseException | None = None,
    ) -> bool:
        k = str(key)
        with self._lock:
            if k in self._keys:
                return False
            self._keys.add(k)

        logger.log(level, msg, *args, exc_info=exc_info)
        return True


__all__ = ["parse_log_level", "setup_logging", "LogOnce"]
