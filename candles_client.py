"""Market data candles client: one GET per ticker, decoded into a CandleRecord."""

from __future__ import annotations

import json
import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote

import requests

from models import CandleRecord, TimeRange

MARKETDATA_API_URL = os.getenv("MARKETDATA_API_URL", "https://api.marketdata.app/v1/stocks/candles/D")
REQUEST_TIMEOUT_SECONDS = 30.0
STATUS_OK = "ok"

LOGGER = logging.getLogger(__name__)

# Short API field name -> CandleRecord attribute.
_PRICE_FIELDS = {"h": "high", "l": "low", "o": "open", "c": "close"}
_INT_FIELDS = {"v": "volume", "t": "timestamp"}


def build_candles_url(ticker: str, time_range: TimeRange, api_token: str, base_url: str = MARKETDATA_API_URL) -> str:
    """Return the candles URL for one ticker and date window."""
    return (
        f"{base_url.rstrip('/')}/{quote(ticker, safe='')}/"
        f"?from={time_range.start.isoformat()}&to={time_range.end.isoformat()}&token={api_token}"
    )


def fetch_candles(
    ticker: str,
    time_range: TimeRange,
    *,
    api_token: str,
    base_url: str = MARKETDATA_API_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> CandleRecord | None:
    """Fetch daily candles for one ticker.

    Returns None on every expected failure (network error, timeout, non-2xx
    status, empty or error body, bad JSON, failed validation) after logging
    one diagnostic line. Callers never need to handle a fetch exception.
    """
    url = build_candles_url(ticker, time_range, api_token, base_url=base_url)

    try:
        response = requests.get(url, timeout=timeout)
    except requests.Timeout:
        LOGGER.warning("Request timed out for %s after %ss", ticker, timeout)
        return None
    except requests.RequestException as exc:
        LOGGER.warning("Request failed for %s: %s", ticker, exc)
        return None

    if not response.ok:
        LOGGER.warning("HTTP error for %s: %s", ticker, response.status_code)
        return None

    body = response.text
    if not body or not body.strip() or "error" in body:
        LOGGER.warning("Invalid response for %s: %s", ticker, _truncate(body))
        return None

    try:
        payload = json.loads(body, parse_float=Decimal)
    except (ValueError, RecursionError) as exc:
        LOGGER.warning("Unparseable response for %s: %s", ticker, exc)
        return None

    record = _parse_candles_payload(payload)
    if record is None:
        LOGGER.warning("Invalid data for %s", ticker)
        return None

    LOGGER.debug("Fetched %s candles for %s", len(record), ticker)
    return record


def _parse_candles_payload(payload: Any) -> CandleRecord | None:
    """Decode and validate a candles payload; None if it is not well-formed."""
    if not isinstance(payload, dict):
        return None

    fields = {str(key).lower(): value for key, value in payload.items()}
    if fields.get("s") != STATUS_OK:
        return None

    values: dict[str, tuple] = {}
    try:
        for key, name in _PRICE_FIELDS.items():
            values[name] = _as_decimals(fields.get(key))
        for key, name in _INT_FIELDS.items():
            values[name] = _as_ints(fields.get(key))
    except (TypeError, ValueError, InvalidOperation):
        return None

    length = len(values["high"])
    if length == 0 or len(values["low"]) != length:
        return None
    if any(seq and len(seq) != length for seq in values.values()):
        return None

    return CandleRecord(status=STATUS_OK, **values)


def _as_decimals(raw: Any) -> tuple[Decimal, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise TypeError(f"expected a list, got {type(raw).__name__}")
    return tuple(_as_decimal(item) for item in raw)


def _as_decimal(item: Any) -> Decimal:
    if isinstance(item, bool) or not isinstance(item, (int, Decimal, str)):
        raise TypeError(f"not a number: {item!r}")
    value = Decimal(item)
    if not value.is_finite():
        raise ValueError(f"not a finite number: {item!r}")
    return value


def _as_ints(raw: Any) -> tuple[int, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise TypeError(f"expected a list, got {type(raw).__name__}")
    result = []
    for item in raw:
        value = _as_decimal(item)
        if value != value.to_integral_value():
            raise ValueError(f"not an integer: {item!r}")
        result.append(int(value))
    return tuple(result)


def _truncate(text: str | None, max_len: int = 200) -> str:
    s = (text or "").strip()
    if len(s) > max_len:
        return s[: max_len - 1] + "…"
    return s
