"""loguru setup for the pagesync process.

The engine logs through ``from loguru import logger``.  Anything that still
uses stdlib ``logging`` (anyio, asyncio) is bridged into the same sinks.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_STDERR_FORMAT = "<level>{level: <8}</level> <cyan>{name}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the original call site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Route all logging to stderr, and to *log_file* when given.

    The file sink always records DEBUG so lock transitions and scan phases
    can be inspected after a failed run; it rotates at 5 MB.
    """
    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=_STDERR_FORMAT)
    if log_file is not None:
        logger.add(log_file, level="DEBUG", format=_FILE_FORMAT, rotation="5 MB", retention=3, encoding="utf-8")

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.debug("Logging initialised (level={}, file={})", level, log_file)
