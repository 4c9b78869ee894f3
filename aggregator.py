"""Candle aggregation (pure, no I/O)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal

from models import ZERO, CandleRecord

_FOUR_PLACES = Decimal("0.0001")
_TWO = Decimal(2)


def mean_mid_price(record: CandleRecord | None) -> Decimal:
    """Return the mean of the daily mid prices (high + low) / 2.

    Zero is the defined fallback for "no usable data": a missing record,
    empty high/low, or high/low of different lengths.
    """
    if record is None or not record.high or len(record.high) != len(record.low):
        return ZERO

    total = sum(((high + low) / _TWO for high, low in zip(record.high, record.low)), ZERO)
    return total / len(record.high)


def format_value(value: Decimal) -> str:
    """Fixed-point text with exactly four fractional digits."""
    # Precision must cover every integer digit plus the four fractional ones.
    context = Context(prec=max(28, value.adjusted() + 6), rounding=ROUND_HALF_UP)
    return format(value.quantize(_FOUR_PLACES, context=context), "f")
