"""Price series store.

Holds a single daily-close series as a validated, date-sorted DataFrame with
two columns:

trade_date  : tz-naive midnight timestamp, unique
close_price : float64, strictly positive, rounded to ``price_decimals``

Every downstream stage reads from ``PriceSeries.frame`` and never writes back
to it.  Records may arrive in any order; calendar gaps (weekends, holidays)
are expected.
"""

from __future__ import annotations

import logging
from typing import Iterable, Tuple

import numpy as np
import pandas as pd
from pandera.errors import SchemaError, SchemaErrors

from ath_returns.exceptions import (
    DuplicateDateError,
    EmptySeriesError,
    InvalidPriceError,
    SeriesValidationError,
)
from ath_returns.storage.schema_registry import get_schema

logger = logging.getLogger(__name__)

DATE_COL = "trade_date"
PRICE_COL = "close_price"
DEFAULT_PRICE_DECIMALS = 2

# Number of offending values quoted in validation error messages.
_MAX_REPORTED = 10


def _coerce_dates(values: pd.Series) -> pd.Series:
    """Parse *values* to tz-naive midnight timestamps (NaT when unparseable)."""
    dates = pd.to_datetime(values, errors="coerce")
    if getattr(dates.dt, "tz", None) is not None:
        dates = dates.dt.tz_localize(None)
    return dates.dt.normalize().astype("datetime64[ns]")


def _validate(df: pd.DataFrame) -> None:
    bad_dates = df[df[DATE_COL].isna()]
    if not bad_dates.empty:
        raise SeriesValidationError(
            f"{len(bad_dates)} record(s) with a missing or unparseable trade date"
        )

    missing = df[df[PRICE_COL].isna()]
    if not missing.empty:
        dates = [d.strftime("%Y-%m-%d") for d in missing[DATE_COL].iloc[:_MAX_REPORTED]]
        raise InvalidPriceError(
            f"{len(missing)} record(s) with a missing or non-numeric close price: "
            + ", ".join(dates)
        )

    non_positive = df[df[PRICE_COL] <= 0]
    if not non_positive.empty:
        dates = [d.strftime("%Y-%m-%d") for d in non_positive[DATE_COL].iloc[:_MAX_REPORTED]]
        raise InvalidPriceError(
            f"{len(non_positive)} record(s) with a zero or negative close price: "
            + ", ".join(dates)
        )

    dupes = df[DATE_COL][df[DATE_COL].duplicated()].drop_duplicates().sort_values()
    if not dupes.empty:
        shown = [d.strftime("%Y-%m-%d") for d in dupes.iloc[:_MAX_REPORTED]]
        suffix = " (showing first 10)" if len(dupes) > _MAX_REPORTED else ""
        raise DuplicateDateError(
            f"{len(dupes)} duplicated trade date(s){suffix}: " + ", ".join(shown),
            dates=list(dupes),
        )


class PriceSeries:
    """Immutable, validated daily-close price series.

    Parameters
    ----------
    df:
        DataFrame with ``trade_date`` and ``close_price`` columns, in any
        order.  Prefer :meth:`from_records` or :meth:`from_frame`.
    price_decimals:
        Close prices are rounded to this many decimals on ingestion.

    Raises
    ------
    EmptySeriesError
        If *df* has no rows.
    InvalidPriceError
        If any close price is missing, non-numeric, zero or negative.
    DuplicateDateError
        If two records share a trade date.
    SeriesValidationError
        If a trade date cannot be parsed or the schema contract fails.
    """

    def __init__(
        self,
        df: pd.DataFrame,
        price_decimals: int = DEFAULT_PRICE_DECIMALS,
    ) -> None:
        missing_cols = {DATE_COL, PRICE_COL} - set(df.columns)
        if missing_cols:
            raise SeriesValidationError(
                f"Price frame is missing column(s): {sorted(missing_cols)}"
            )
        if df.empty:
            raise EmptySeriesError("Price series is empty — nothing to analyse.")

        frame = df[[DATE_COL, PRICE_COL]].copy()
        frame[DATE_COL] = _coerce_dates(frame[DATE_COL])
        frame[PRICE_COL] = pd.to_numeric(frame[PRICE_COL], errors="coerce").astype(
            "float64"
        )

        _validate(frame)

        frame[PRICE_COL] = frame[PRICE_COL].round(price_decimals)
        # A sub-cent price rounds to zero at the configured precision.
        if (frame[PRICE_COL] <= 0).any():
            raise InvalidPriceError(
                f"Close price rounds to zero at {price_decimals} decimal(s)"
            )

        frame = frame.sort_values(DATE_COL).reset_index(drop=True)

        try:
            get_schema("prices").schema.validate(frame)
        except (SchemaError, SchemaErrors) as exc:
            raise SeriesValidationError(
                f"Price series schema validation failed: {exc}"
            ) from exc

        self._frame = frame
        self.price_decimals = price_decimals
        logger.debug(
            "PriceSeries: %d records, %s → %s",
            len(frame),
            self.min_date.date(),
            self.max_date.date(),
        )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Iterable[Tuple[object, object]],
        price_decimals: int = DEFAULT_PRICE_DECIMALS,
    ) -> "PriceSeries":
        """Build a series from ``(date, price)`` pairs.

        Dates may be ``datetime.date``, ``datetime``, ``pd.Timestamp`` or ISO
        strings; prices may be ``int``, ``float``, ``Decimal`` or numeric
        strings.
        """
        rows = list(records)
        df = pd.DataFrame(rows, columns=[DATE_COL, PRICE_COL])
        return cls(df, price_decimals=price_decimals)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        date_col: str = DATE_COL,
        price_col: str = PRICE_COL,
        price_decimals: int = DEFAULT_PRICE_DECIMALS,
    ) -> "PriceSeries":
        """Build a series from an arbitrary DataFrame.

        Only *date_col* and *price_col* are kept; they are renamed to the
        canonical ``trade_date`` / ``close_price`` names.
        """
        missing_cols = {date_col, price_col} - set(df.columns)
        if missing_cols:
            raise SeriesValidationError(
                f"Input frame is missing column(s): {sorted(missing_cols)}"
            )
        renamed = df[[date_col, price_col]].rename(
            columns={date_col: DATE_COL, price_col: PRICE_COL}
        )
        return cls(renamed, price_decimals=price_decimals)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def frame(self) -> pd.DataFrame:
        """Sorted copy of the series."""
        return self._frame.copy()

    @property
    def dates(self) -> np.ndarray:
        """Sorted ``datetime64[ns]`` array of trade dates."""
        return self._frame[DATE_COL].to_numpy(dtype="datetime64[ns]")

    @property
    def min_date(self) -> pd.Timestamp:
        return self._frame[DATE_COL].iloc[0]

    @property
    def max_date(self) -> pd.Timestamp:
        return self._frame[DATE_COL].iloc[-1]

    def count(self) -> int:
        """Number of records in the series."""
        return len(self._frame)

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return (
            f"PriceSeries(count={self.count()}, "
            f"min_date={self.min_date.date()}, max_date={self.max_date.date()})"
        )
