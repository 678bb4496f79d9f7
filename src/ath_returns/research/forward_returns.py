"""Forward return computation.

Turns forward-date matches into dollar and percentage gains for each horizon.

Outcome columns produced per horizon *h*
----------------------------------------
yr{h}_close_price  : close of the matched forward record
yr{h}_gain_dollars : yr{h}_close_price - close_price
yr{h}_gain_perc    : round((yr{h}_close_price - close_price) / close_price, 4)

All three are NaN when either

* the trade date is later than ``max(trade_date) - h years`` (the series
  does not extend far enough forward to trust a match near its end), or
* no record fell inside the tolerance window before the target date.

Gains are computed in integer price units (cents at two decimals) and
``gain_perc`` is rounded half to even on the exact ratio, so ties such as
0.00225 always round the same way.  Values are converted to float only after
rounding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ath_returns.research.forward_match import (
    DEFAULT_TOLERANCE_DAYS,
    add_years,
    match_forward_dates,
)

logger = logging.getLogger(__name__)

DEFAULT_HORIZONS = (1, 3, 5)
DEFAULT_PERCENT_DECIMALS = 4


@dataclass(frozen=True)
class SeriesBounds:
    """Latest trade date whose *h*-year outcome can be trusted, per horizon."""

    max_trade_date: pd.Timestamp
    horizon_bounds: Mapping[int, pd.Timestamp] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "horizon_bounds", MappingProxyType(dict(self.horizon_bounds))
        )

    def bound_for(self, horizon: int) -> pd.Timestamp:
        try:
            return self.horizon_bounds[horizon]
        except KeyError:
            valid = ", ".join(str(h) for h in sorted(self.horizon_bounds))
            raise KeyError(f"No bound for horizon {horizon}y. Known horizons: {valid}")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "horizon": list(self.horizon_bounds),
                "max_trade_date": self.max_trade_date,
                "max_source_date": list(self.horizon_bounds.values()),
            }
        )


def compute_series_bounds(
    df: pd.DataFrame,
    horizons: Sequence[int] = DEFAULT_HORIZONS,
) -> SeriesBounds:
    """Derive ``max(trade_date) - h years`` for every horizon in *horizons*."""
    if df.empty:
        raise ValueError("Cannot compute bounds of an empty series")
    max_date = pd.Timestamp(df["trade_date"].max())
    anchor = pd.Series([max_date])
    bounds = {
        int(h): pd.Timestamp(add_years(anchor, -int(h)).iloc[0]) for h in horizons
    }
    return SeriesBounds(max_trade_date=max_date, horizon_bounds=bounds)


def add_forward_returns(
    df: pd.DataFrame,
    horizons: Sequence[int] = DEFAULT_HORIZONS,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
    bounds: Optional[SeriesBounds] = None,
    price_decimals: int = 2,
    percent_decimals: int = DEFAULT_PERCENT_DECIMALS,
) -> pd.DataFrame:
    """Append forward match and return columns for each horizon to *df*.

    Parameters
    ----------
    df:
        Annotated series (output of ``annotate_running_high``).  Must contain
        ``trade_date`` and ``close_price``; sorted by unique ``trade_date``.
    horizons:
        Forward offsets in whole years.
    tolerance_days:
        Trailing window searched before each target date.
    bounds:
        Precomputed :class:`SeriesBounds`.  Derived from *df* when omitted.
    price_decimals:
        Precision of ``yr{h}_gain_dollars``.
    percent_decimals:
        Precision of ``yr{h}_gain_perc``.

    Returns
    -------
    pd.DataFrame
        Copy of *df* with ``yr{h}_target_date``, ``yr{h}_match_date``,
        ``yr{h}_match_pos``, ``yr{h}_close_price``, ``yr{h}_gain_dollars`` and
        ``yr{h}_gain_perc`` columns appended.  Existing columns are unchanged.

    Raises
    ------
    RuntimeError
        If a source close price is null.  ``PriceSeries`` rejects those at
        ingestion, so this indicates a broken upstream invariant.
    """
    df = df.sort_values("trade_date").reset_index(drop=True).copy()

    if df["close_price"].isna().any():
        raise RuntimeError(
            "Null source close price reached the return calculator; "
            "price series must be validated before analysis"
        )

    if bounds is None:
        bounds = compute_series_bounds(df, horizons)

    source_close = df["close_price"].to_numpy(dtype="float64")
    future_close_all = np.append(source_close, np.nan)
    source_units = _to_units(source_close, price_decimals)

    for h in horizons:
        prefix = f"yr{h}"
        matches = match_forward_dates(df, h, tolerance_days=tolerance_days)
        df = df.join(matches)

        in_range = (df["trade_date"] <= bounds.bound_for(h)).to_numpy()

        # Absent matches point one past the end, where the close is NaN
        pos = matches[f"{prefix}_match_pos"].fillna(len(df)).to_numpy(dtype="int64")
        future_close = np.where(in_range, future_close_all[pos], np.nan)
        valid = np.isfinite(future_close)

        gain_units = _to_units(np.where(valid, future_close, 0.0), price_decimals)
        gain_units = gain_units - source_units
        perc_units = _div_half_even(
            gain_units * 10 ** percent_decimals, source_units
        )

        df[f"{prefix}_close_price"] = future_close
        df[f"{prefix}_gain_dollars"] = np.where(
            valid, gain_units / 10 ** price_decimals, np.nan
        )
        df[f"{prefix}_gain_perc"] = np.where(
            valid, perc_units / 10 ** percent_decimals, np.nan
        )

        logger.debug(
            "add_forward_returns: %s bound=%s, %d/%d outcomes",
            prefix,
            bounds.bound_for(h).date(),
            int(valid.sum()),
            len(df),
        )

    return df


def _to_units(prices: np.ndarray, decimals: int) -> np.ndarray:
    """Prices as int64 counts of the smallest unit (cents at 2 decimals)."""
    return np.rint(prices * 10 ** decimals).astype("int64")


def _div_half_even(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Integer ``numerator / denominator`` rounded half to even.

    *denominator* must be positive.  ``np.divmod`` floors, so the remainder
    is always in ``[0, denominator)`` whatever the sign of *numerator*.
    """
    quotient, remainder = np.divmod(numerator, denominator)
    twice = 2 * remainder
    round_up = (twice > denominator) | ((twice == denominator) & (quotient % 2 == 1))
    return quotient + round_up.astype("int64")


def stack_outcomes(
    df: pd.DataFrame,
    horizons: Sequence[int] = DEFAULT_HORIZONS,
) -> pd.DataFrame:
    """Reshape a wide forward return frame to one row per (day, horizon).

    Returns
    -------
    pd.DataFrame
        Columns: ``trade_date``, ``close_price``, ``running_high``,
        ``is_new_high``, ``horizon``, ``target_date``, ``match_date``,
        ``future_close_price``, ``gain_dollars``, ``gain_perc``.  Sorted by
        ``(trade_date, horizon)``.
    """
    base_cols = [
        c for c in ["trade_date", "close_price", "running_high", "is_new_high"]
        if c in df.columns
    ]
    frames = []
    for h in horizons:
        prefix = f"yr{h}"
        part = df[base_cols].copy()
        part["horizon"] = int(h)
        part["target_date"] = df[f"{prefix}_target_date"]
        part["match_date"] = df[f"{prefix}_match_date"]
        part["future_close_price"] = df[f"{prefix}_close_price"]
        part["gain_dollars"] = df[f"{prefix}_gain_dollars"]
        part["gain_perc"] = df[f"{prefix}_gain_perc"]
        frames.append(part)

    if not frames:
        return pd.DataFrame(columns=base_cols + ["horizon"])

    long_df = pd.concat(frames, ignore_index=True)
    return long_df.sort_values(["trade_date", "horizon"], kind="stable").reset_index(
        drop=True
    )
