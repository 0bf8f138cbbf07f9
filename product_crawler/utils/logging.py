from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | int | None = None, log_file: Optional[str] = None) -> None:
    """
    Configure application logging once, for the CLI process.
    Library modules only ever call ``logging.getLogger(__name__)``.
    """
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = log_file or os.getenv("CRAWLER_LOG_FILE") or None
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
    # aiohttp's access/client loggers are noisy at DEBUG during large crawls.
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))
