"""CLI entrypoint for the candle average pipeline."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from functools import partial

from dotenv import load_dotenv

from candles_client import MARKETDATA_API_URL, REQUEST_TIMEOUT_SECONDS, fetch_candles
from dispatcher import DEFAULT_CONCURRENCY_LIMIT, DEFAULT_LAUNCH_DELAY_SECONDS, dispatch, summarize
from models import WorkItem, lookback_range
from pipeline import process_item
from result_sink import RESULTS_OUTPUT_PATH, ResultSink
from tickers import TICKERS_FILE_PATH, read_tickers

DEFAULT_LOOKBACK_DAYS = 360


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags. Defaults come from the environment."""
    parser = argparse.ArgumentParser(description="Fetch daily candles and record each ticker's average mid price")
    parser.add_argument(
        "--tickers-file",
        default=os.getenv("TICKERS_FILE_PATH", TICKERS_FILE_PATH),
        help="Newline-delimited ticker list (blank lines ignored)",
    )
    parser.add_argument(
        "--ticker",
        action="append",
        dest="tickers",
        metavar="SYMBOL",
        help="Process this ticker instead of reading the tickers file (repeatable)",
    )
    parser.add_argument(
        "--output",
        default=os.getenv("RESULTS_OUTPUT_PATH", RESULTS_OUTPUT_PATH),
        help="Results file, truncated at startup",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=int(os.getenv("MAX_CONCURRENT_REQUESTS", str(DEFAULT_CONCURRENCY_LIMIT))),
        help="Maximum number of in-flight requests",
    )
    parser.add_argument(
        "--lookback-days",
        type=int,
        default=int(os.getenv("LOOKBACK_DAYS", str(DEFAULT_LOOKBACK_DAYS))),
        help="Length of the candle window ending today",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(os.getenv("REQUEST_TIMEOUT_SECONDS", str(REQUEST_TIMEOUT_SECONDS))),
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--launch-delay",
        type=float,
        default=float(os.getenv("LAUNCH_DELAY_SECONDS", str(DEFAULT_LAUNCH_DELAY_SECONDS))),
        help="Pause between successive task launches, in seconds",
    )
    args = parser.parse_args(argv)
    if args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    return args


def run(
    tickers: tuple[WorkItem, ...],
    *,
    api_token: str,
    output_path: str,
    concurrency: int,
    lookback_days: int,
    timeout: float,
    launch_delay: float,
    base_url: str = MARKETDATA_API_URL,
) -> int:
    """Process every ticker and return the process exit status."""
    sink = ResultSink(output_path)
    sink.initialize()

    fetch = partial(fetch_candles, api_token=api_token, base_url=base_url, timeout=timeout)
    process = partial(process_item, fetch=fetch, sink=sink, time_range=lookback_range(lookback_days))

    results = dispatch(tickers, process, concurrency_limit=concurrency, launch_delay=launch_delay)
    summary = summarize(results)

    logging.info(
        "Run complete. total=%s succeeded=%s failed=%s unwritten=%s",
        summary.total,
        summary.succeeded,
        summary.failed,
        summary.unwritten,
    )
    logging.info("Results saved to: %s", sink.path.resolve())

    if summary.unwritten:
        logging.error("%s result(s) could not be written to %s", summary.unwritten, sink.path)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the pipeline."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    api_token = os.getenv("MARKETDATA_API_TOKEN")
    if not api_token:
        logging.error("MARKETDATA_API_TOKEN environment variable is required")
        return 1

    if args.tickers:
        tickers = tuple(t.strip() for t in args.tickers if t.strip())
    else:
        try:
            tickers = read_tickers(args.tickers_file)
        except (OSError, UnicodeDecodeError) as exc:
            logging.error("%s", exc)
            return 1

    return run(
        tickers,
        api_token=api_token,
        output_path=args.output,
        concurrency=args.concurrency,
        lookback_days=args.lookback_days,
        timeout=args.timeout,
        launch_delay=args.launch_delay,
        base_url=os.getenv("MARKETDATA_API_URL", MARKETDATA_API_URL),
    )


if __name__ == "__main__":
    sys.exit(main())
