"""Logging setup for the dictation app.

File logging with rotation, optional stderr output and small helpers for
timing pipeline stages.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

LOGGER_NAME = "dictation"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(LOGGER_NAME)
_configured = False


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure file logging with rotation, plus stderr in debug mode.

    The application modules log through ``logging.getLogger(__name__)``, so
    handlers are attached to the root logger.  Repeated calls only adjust the
    level.
    """
    global _configured

    root = logging.getLogger()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)
    if _configured:
        return logger

    if log_file is None:
        from config import LOG_FILE

        log_file = LOG_FILE

    handler: logging.Handler
    file_logging = True
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
        handler.setLevel(logging.DEBUG)
    except OSError:
        # Logging must not block app start.
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        file_logging = False
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%H:%M:%S"))
    root.addHandler(handler)

    if debug and file_logging:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.DEBUG)
        stderr_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        root.addHandler(stderr_handler)

    _configured = True
    return logger


def format_duration(milliseconds: float) -> str:
    if milliseconds >= 1000:
        return f"{milliseconds / 1000:.2f}s"
    return f"{milliseconds:.0f}ms"


def log_preview(text: str, max_length: int = 100) -> str:
    """Shorten text for log output."""
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


@contextmanager
def timed_operation(
    name: str,
    *,
    op_logger: Optional[logging.Logger] = None,
    generation: Optional[int] = None,
) -> Iterator[None]:
    """Log how long the wrapped block took.

    Usage:
        with timed_operation("transcribe", generation=3):
            result = transcriber.transcribe(...)
    """
    target = op_logger or logger
    prefix = f"[gen {generation}] " if generation is not None else ""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        target.info("%s%s: %s", prefix, name, format_duration(elapsed_ms))
