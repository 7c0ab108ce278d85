from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# Third-party loggers that drown out crawl progress at DEBUG.
_NOISY = ("asyncio", "uvicorn.access")


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure application logging with a consistent, upgrade-friendly formatter.
    Level comes from the argument, then CRAWLER_LOG_LEVEL, then INFO.
    """
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
