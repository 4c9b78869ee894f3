"""Bounded-concurrency dispatcher: one worker task per ticker, joined at the end."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable

from models import AggregateResult, WorkItem
from pipeline import is_unwritten

DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_LAUNCH_DELAY_SECONDS = 0.1

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Per-run tallies, logged once all tickers are finished."""

    total: int
    succeeded: int
    failed: int
    unwritten: int


def dispatch(
    items: Iterable[WorkItem],
    process: Callable[[WorkItem], AggregateResult],
    *,
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    launch_delay: float = DEFAULT_LAUNCH_DELAY_SECONDS,
) -> list[AggregateResult]:
    """Run `process` once per item with at most `concurrency_limit` in flight.

    A permit is taken before each launch and released when that task ends,
    whatever the outcome. Launches are spaced by `launch_delay` seconds.
    Returns only after every launched task has finished, with results in
    input order.
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    items = list(items)
    permits = threading.BoundedSemaphore(concurrency_limit)
    futures: list[Future[AggregateResult]] = []

    def run_with_permit(item: WorkItem) -> AggregateResult:
        try:
            return process(item)
        finally:
            permits.release()

    LOGGER.info("Starting processing of %s tickers with %s concurrent tasks", len(items), concurrency_limit)

    with ThreadPoolExecutor(max_workers=concurrency_limit, thread_name_prefix="ticker") as executor:
        for index, item in enumerate(items):
            permits.acquire()
            try:
                futures.append(executor.submit(run_with_permit, item))
            except BaseException:
                permits.release()
                raise
            if launch_delay > 0 and index < len(items) - 1:
                time.sleep(launch_delay)

        wait(futures)

    LOGGER.info("All tickers processed!")
    # Re-raises the first exception that escaped `process`, after the fan-in.
    return [future.result() for future in futures]


def summarize(results: Iterable[AggregateResult]) -> RunSummary:
    """Count successes, failures and results that never reached the sink."""
    results = list(results)
    succeeded = sum(1 for r in results if r.success)
    return RunSummary(
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        unwritten=sum(1 for r in results if is_unwritten(r)),
    )
