"""Shared typed models for the candle pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

# A ticker symbol, trimmed and non-blank.
WorkItem = str

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Inclusive date window sent to the candles endpoint."""

    start: date
    end: date


def lookback_range(days: int, today: date | None = None) -> TimeRange:
    """Return the window ending today and starting `days` days earlier."""
    end = today or date.today()
    return TimeRange(start=end - timedelta(days=days), end=end)


@dataclass(frozen=True, slots=True)
class CandleRecord:
    """Validated daily candles for one ticker.

    Only built by the client after validation: status is "ok", high and low
    are non-empty and every non-empty sequence has the same length.
    """

    status: str
    high: tuple[Decimal, ...]
    low: tuple[Decimal, ...]
    open: tuple[Decimal, ...] = field(default=())
    close: tuple[Decimal, ...] = field(default=())
    volume: tuple[int, ...] = field(default=())
    timestamp: tuple[int, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.high)


@dataclass(frozen=True, slots=True)
class AggregateResult:
    """Outcome of one ticker, written to the sink exactly once."""

    ticker: WorkItem
    value: Decimal
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls, ticker: WorkItem, value: Decimal) -> AggregateResult:
        return cls(ticker=ticker, value=value, success=True)

    @classmethod
    def failed(cls, ticker: WorkItem, error: str) -> AggregateResult:
        return cls(ticker=ticker, value=ZERO, success=False, error=error)
