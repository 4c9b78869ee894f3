"""Ticker list loading."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from models import WorkItem

TICKERS_FILE_PATH = "tickers.txt"

LOGGER = logging.getLogger(__name__)


def read_tickers(path: str | os.PathLike[str] = TICKERS_FILE_PATH) -> tuple[WorkItem, ...]:
    """Return the trimmed, non-blank lines of a newline-delimited ticker file.

    Raises FileNotFoundError if the file does not exist. Duplicates are kept
    so every input line yields exactly one output line.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Tickers file not found: {file_path}")

    text = file_path.read_text(encoding="utf-8-sig")
    tickers = tuple(line.strip() for line in text.splitlines() if line.strip())
    LOGGER.info("Found tickers: %s", len(tickers))
    return tickers
