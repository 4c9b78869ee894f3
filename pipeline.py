"""Per-ticker pipeline: fetch -> aggregate -> write."""

from __future__ import annotations

import logging
from typing import Callable

from aggregator import format_value, mean_mid_price
from models import AggregateResult, CandleRecord, TimeRange, WorkItem
from result_sink import ResultSink

NO_DATA = "no data"
WRITE_FAILED_PREFIX = "write failed: "

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[WorkItem, TimeRange], CandleRecord | None]


def evaluate_item(ticker: WorkItem, fetch: Fetcher, time_range: TimeRange) -> AggregateResult:
    """Fetch and aggregate one ticker, returning a result instead of raising."""
    try:
        record = fetch(ticker, time_range)
        if record is None:
            return AggregateResult.failed(ticker, NO_DATA)
        return AggregateResult.ok(ticker, mean_mid_price(record))
    except Exception as exc:  # broad by design: one bad ticker must not stop the run
        LOGGER.exception("Unexpected error evaluating %s: %s", ticker, exc)
        return AggregateResult.failed(ticker, str(exc) or type(exc).__name__)


def process_item(
    ticker: WorkItem,
    *,
    fetch: Fetcher,
    sink: ResultSink,
    time_range: TimeRange,
) -> AggregateResult:
    """Run one ticker end to end and record it with exactly one sink write.

    A failed write is not retried. The returned result is marked failed with
    a "write failed: ..." error so the run summary can report it.
    """
    LOGGER.info("Processing: %s", ticker)
    result = evaluate_item(ticker, fetch, time_range)

    try:
        sink.write(result)
    except Exception as exc:  # broad by design: reported via the returned result
        LOGGER.error("Failed to record %s: %s", ticker, exc)
        return AggregateResult.failed(ticker, f"{WRITE_FAILED_PREFIX}{exc}")

    if result.success:
        LOGGER.info("Done: %s - %s", ticker, format_value(result.value))
    else:
        LOGGER.warning("Error with %s: %s", ticker, result.error)
    return result


def is_unwritten(result: AggregateResult) -> bool:
    """True when the result never reached the sink."""
    return not result.success and (result.error or "").startswith(WRITE_FAILED_PREFIX)
