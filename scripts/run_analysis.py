"""Run the all-time-high forward return analysis on a price file.

Usage
-----
    python scripts/run_analysis.py --input data/sp500.csv
    python scripts/run_analysis.py --input data/sp500.csv --config config/analysis.yaml
    python scripts/run_analysis.py --input data/sp500.parquet --db data/ath_returns.duckdb

The input file needs a date column and a close price column (default names
``trade_date`` and ``close_price``; override with --date-col / --price-col).
The summary is printed to stdout.  With --db, every output table is written
to the DuckDB database, replacing earlier runs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

import duckdb

from ath_returns.config import DEFAULT_CONFIG_PATH, load_config
from ath_returns.exceptions import AthReturnsError
from ath_returns.pipeline import run_analysis
from ath_returns.series.store import PriceSeries
from ath_returns.storage.duckdb_client import DuckDBClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Forward returns after all-time-high closes vs any day"
    )
    parser.add_argument("--input", required=True, help="CSV or parquet price file")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to analysis.yaml (default: config/analysis.yaml)",
    )
    parser.add_argument("--db", default=None, help="DuckDB file to write results to")
    parser.add_argument("--symbol", default=None, help="Override symbol label")
    parser.add_argument("--date-col", default="trade_date")
    parser.add_argument("--price-col", default="close_price")
    args = parser.parse_args()

    try:
        config = load_config(Path(args.config))
        if args.symbol:
            config = replace(config, symbol=args.symbol)

        with DuckDBClient(db_path=Path(args.db or ":memory:")) as client:
            prices = client.load_price_frame(
                Path(args.input), date_col=args.date_col, price_col=args.price_col
            )
            series = PriceSeries(prices, price_decimals=config.price_decimals)
            result = run_analysis(series, config)
            if args.db:
                client.persist_result(result)
                logger.info("Tables in %s: %s", args.db, ", ".join(client.list_tables()))
    except (AthReturnsError, duckdb.Error, FileNotFoundError, ValueError) as exc:
        logger.error("Analysis failed: %s", exc)
        sys.exit(1)

    print("\n" + "=" * 55)
    print(result.summary())
    print("=" * 55)
    print("\nYearly performance:")
    print(result.yearly.to_string(index=False))


if __name__ == "__main__":
    main()
