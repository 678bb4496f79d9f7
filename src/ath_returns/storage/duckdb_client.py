"""DuckDB client for ath_returns.

Lightweight connection manager used at the edges of the analysis:

- Loads a price series from a CSV or parquet file (``load_price_frame``)
- Persists an ``AnalysisResult`` as one table per output (``persist_result``)
- Supports context manager protocol
- Exposes utility methods: list_tables, row_count, query

Tables written by ``persist_result``
------------------------------------
trades_w_return_perf      one row per trade day with yr{h}_* outcome columns
yearly_trade_performance  per-year counts and mean gains
segment_avg_gain_perc     segment × horizon mean gains
segment_median_gain_perc  segment × horizon median gains
series_bounds             latest trustworthy source date per horizon
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/ath_returns.duckdb")

RESULT_TABLES = (
    "trades_w_return_perf",
    "yearly_trade_performance",
    "segment_avg_gain_perc",
    "segment_median_gain_perc",
    "series_bounds",
)


class DuckDBClient:
    def __init__(
        self,
        db_path: Path = DEFAULT_DB_PATH,
        read_only: bool = False,
    ) -> None:
        self.db_path = Path(db_path)
        self.read_only = read_only

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(
            str(self.db_path), read_only=read_only
        )
        logger.debug(
            "Connected to DuckDB at %s (read_only=%s)", self.db_path, read_only
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DuckDBClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("DuckDB connection closed.")

    # ------------------------------------------------------------------
    # Connection property
    # ------------------------------------------------------------------

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDB connection is closed.")
        return self._conn

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_price_frame(
        self,
        path: Path,
        date_col: str = "trade_date",
        price_col: str = "close_price",
    ) -> pd.DataFrame:
        """Read *date_col* and *price_col* from a CSV or parquet file.

        The frame is returned as read, columns renamed to ``trade_date`` and
        ``close_price``; validation is left to ``PriceSeries``.

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        ValueError
            If the file extension is not ``.csv`` or ``.parquet``.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Price file not found: {path}")

        suffix = path.suffix.lower()
        if suffix == ".csv":
            reader = "read_csv_auto"
        elif suffix == ".parquet":
            reader = "read_parquet"
        else:
            raise ValueError(
                f"Unsupported price file type '{suffix}'. Use .csv or .parquet"
            )

        # Table functions take the path as a literal; escape embedded quotes
        literal = str(path).replace("'", "''")
        sql = f"""
        SELECT
            "{date_col}"  AS trade_date,
            "{price_col}" AS close_price
        FROM {reader}('{literal}')
        ORDER BY 1
        """
        df = self.conn.execute(sql).df()
        logger.info("Loaded %d price row(s) from %s", len(df), path)
        return df

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def write_table(self, table: str, df: pd.DataFrame) -> int:
        """Create or replace *table* with the contents of *df*.

        Returns the row count of the table as stored.
        """
        self.conn.register("_ath_returns_frame", df)
        try:
            self.conn.execute(
                f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM _ath_returns_frame"
            )
        finally:
            self.conn.unregister("_ath_returns_frame")
        return self.row_count(table)

    def persist_result(self, result) -> dict:
        """Write every output of *result* (an ``AnalysisResult``) to its table.

        Re-running replaces the tables, so the operation is idempotent.

        Returns
        -------
        dict
            Table name → rows written.
        """
        frames = {
            "trades_w_return_perf": result.outcomes,
            "yearly_trade_performance": result.yearly,
            "segment_avg_gain_perc": result.averages.reset_index(),
            "segment_median_gain_perc": result.medians.reset_index(),
            "series_bounds": result.bounds.to_frame(),
        }
        written = {table: self.write_table(table, df) for table, df in frames.items()}
        logger.info(
            "persist_result: %d table(s) written to %s", len(written), self.db_path
        )
        return written

    # ------------------------------------------------------------------
    # Query interface
    # ------------------------------------------------------------------

    def query(self, sql: str, params: Optional[list] = None) -> pd.DataFrame:
        """Execute *sql* and return results as a DataFrame.

        Parameters
        ----------
        sql:
            SQL string, optionally with positional ``?`` placeholders.
        params:
            List of values to bind to ``?`` placeholders, or *None*.
        """
        result = self.conn.execute(sql, params or [])
        return result.df()

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------

    def list_tables(self) -> List[str]:
        """Return names of all base tables in this DuckDB database."""
        df = self.conn.execute(
            "SELECT table_name FROM duckdb_tables() ORDER BY table_name"
        ).df()
        tables = df["table_name"].tolist()
        logger.debug("list_tables → %s", tables)
        return tables

    def row_count(self, table: str) -> int:
        """Return the number of rows in *table*."""
        df = self.conn.execute(f"SELECT COUNT(*) AS n FROM {table}").df()
        count = int(df["n"].iloc[0])
        logger.debug("row_count(%s) → %d", table, count)
        return count
