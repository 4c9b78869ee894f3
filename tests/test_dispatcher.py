from __future__ import annotations

import threading
import time
from datetime import date
from decimal import Decimal
from functools import partial
from pathlib import Path

import pytest

from dispatcher import RunSummary, dispatch, summarize
from models import AggregateResult, CandleRecord, TimeRange
from pipeline import process_item
from result_sink import ResultSink

_RANGE = TimeRange(start=date(2025, 1, 1), end=date(2025, 12, 27))


class _InFlightTracker:
    """Fake fetcher that records the peak number of concurrent calls."""

    def __init__(self, hold_seconds: float = 0.02) -> None:
        self.hold_seconds = hold_seconds
        self.current = 0
        self.peak = 0
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, ticker: str, time_range: TimeRange) -> CandleRecord | None:
        with self._lock:
            self.current += 1
            self.peak = max(self.peak, self.current)
            self.calls.append(ticker)
        try:
            time.sleep(self.hold_seconds)
            return CandleRecord(status="ok", high=(Decimal("2"),), low=(Decimal("1"),))
        finally:
            with self._lock:
                self.current -= 1


def _processor(sink: ResultSink, fetch) -> partial:
    return partial(process_item, fetch=fetch, sink=sink, time_range=_RANGE)


@pytest.fixture
def sink(tmp_path: Path) -> ResultSink:
    result_sink = ResultSink(tmp_path / "results.txt")
    result_sink.initialize()
    return result_sink


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
def test_dispatch_never_exceeds_concurrency_limit(sink: ResultSink, limit: int) -> None:
    fetch = _InFlightTracker()
    tickers = [f"T{i}" for i in range(12)]

    dispatch(tickers, _processor(sink, fetch), concurrency_limit=limit, launch_delay=0)

    assert fetch.peak <= limit
    assert sorted(fetch.calls) == sorted(tickers)


def test_dispatch_writes_exactly_one_line_per_item(sink: ResultSink) -> None:
    tickers = [f"T{i}" for i in range(20)] + ["T0"]

    results = dispatch(tickers, _processor(sink, _InFlightTracker(0.001)), concurrency_limit=4, launch_delay=0)

    lines = sink.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == len(tickers)
    assert sorted(lines) == sorted(f"{t}:1.5000" for t in tickers)
    assert [r.ticker for r in results] == tickers


def test_dispatch_scenario_success_and_absent(sink: ResultSink) -> None:
    records = {
        "AAA": CandleRecord(status="ok", high=(Decimal("151"), Decimal("152")), low=(Decimal("149.5"), Decimal("148.5"))),
        "BBB": None,
    }

    results = dispatch(
        ["AAA", "BBB"],
        _processor(sink, lambda ticker, time_range: records[ticker]),
        concurrency_limit=3,
        launch_delay=0,
    )

    lines = sink.path.read_text(encoding="utf-8").splitlines()
    assert sorted(lines) == ["AAA:150.2500", "BBB:0.0000"]
    by_ticker = {r.ticker: r for r in results}
    assert by_ticker["AAA"].success is True
    assert by_ticker["BBB"].success is False
    assert by_ticker["BBB"].error == "no data"


def test_dispatch_isolates_failing_items(sink: ResultSink) -> None:
    def flaky(ticker: str, time_range: TimeRange) -> CandleRecord | None:
        if ticker == "BAD":
            raise ValueError("bad ticker")
        return CandleRecord(status="ok", high=(Decimal("4"),), low=(Decimal("2"),))

    results = dispatch(["A", "BAD", "B"], _processor(sink, flaky), concurrency_limit=2, launch_delay=0)

    assert [r.success for r in results] == [True, False, True]
    assert sorted(sink.path.read_text(encoding="utf-8").splitlines()) == ["A:3.0000", "B:3.0000", "BAD:0.0000"]


def test_dispatch_releases_permit_when_process_raises() -> None:
    def process(item: str) -> AggregateResult:
        if item == "X":
            raise RuntimeError("escaped")
        return AggregateResult.ok(item, Decimal("1"))

    finished: list[str] = []

    def tracking(item: str) -> AggregateResult:
        try:
            return process(item)
        finally:
            finished.append(item)

    # With one permit, a leaked permit on "X" would deadlock the following launch.
    with pytest.raises(RuntimeError, match="escaped"):
        dispatch(["X", "Y", "Z"], tracking, concurrency_limit=1, launch_delay=0)

    assert sorted(finished) == ["X", "Y", "Z"]


def test_dispatch_spaces_launches(sink: ResultSink) -> None:
    started = time.monotonic()
    dispatch(["A", "B", "C"], _processor(sink, _InFlightTracker(0)), concurrency_limit=3, launch_delay=0.05)
    assert time.monotonic() - started >= 0.09


def test_dispatch_rejects_invalid_limit() -> None:
    with pytest.raises(ValueError):
        dispatch(["A"], lambda item: AggregateResult.ok(item, Decimal("1")), concurrency_limit=0)


def test_dispatch_empty_input() -> None:
    assert dispatch([], lambda item: AggregateResult.ok(item, Decimal("1"))) == []


def test_summarize_counts_outcomes() -> None:
    results = [
        AggregateResult.ok("A", Decimal("1")),
        AggregateResult.failed("B", "no data"),
        AggregateResult.failed("C", "write failed: disk full"),
    ]
    assert summarize(results) == RunSummary(total=3, succeeded=1, failed=2, unwritten=1)
