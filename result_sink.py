"""Text file sink for per-ticker results, safe to call from worker threads."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from aggregator import format_value
from models import AggregateResult

RESULTS_OUTPUT_PATH = "stock_prices_result.txt"

LOGGER = logging.getLogger(__name__)


class SinkWriteError(RuntimeError):
    """Raised when a result line cannot be appended to the output file."""


def format_result_line(result: AggregateResult) -> str:
    """Serialize one result as `<ticker>:<value with 4 decimals>`."""
    return f"{result.ticker}:{format_value(result.value)}"


class ResultSink:
    """Append-only results file with one writer at a time."""

    def __init__(self, path: str | os.PathLike[str] = RESULTS_OUTPUT_PATH) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Create or truncate the output file. Safe to call repeatedly."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("", encoding="utf-8")
            except OSError as exc:
                raise SinkWriteError(f"Cannot initialize {self.path}: {exc}") from exc
        LOGGER.info("Results will be saved to: %s", self.path)

    def write(self, result: AggregateResult) -> str:
        """Append one line for `result` and return it once it is on disk."""
        line = format_result_line(result)

        with self._lock:
            try:
                with self.path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
                    fh.flush()
                    os.fsync(fh.fileno())
            except OSError as exc:
                raise SinkWriteError(f"Cannot append to {self.path}: {exc}") from exc

        LOGGER.info("Written: %s", line)
        return line
