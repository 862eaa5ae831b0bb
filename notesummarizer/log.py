"""Logging setup for the summarize-notes CLI.

``setup_logging`` configures the ``"notesummarizer"`` package logger once per
session; every module logs through ``logging.getLogger(__name__)`` and lets
records propagate up to it.  The HTTP stack underneath the openai SDK is kept at
WARNING unless verbose output is requested, since it logs every request.
"""

import logging
import sys
from pathlib import Path

_FMT = "%(asctime)s  %(levelname)-7s [%(threadName)s] %(message)s"
_DATE = "%H:%M:%S"

_HTTP_LOGGERS = ("openai", "httpx", "httpcore")


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure the ``notesummarizer`` logger for a CLI session.

    Args:
        verbose:  DEBUG level (prompt sizes, HTTP client chatter) instead of INFO.
        log_file: Also write to this file; parent directories are created.

    Safe to call repeatedly: previous handlers are dropped first.
    """
    logger = logging.getLogger("notesummarizer")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(_FMT, datefmt=_DATE)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
