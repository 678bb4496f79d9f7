"""Descriptive aggregation of forward returns.

All functions accept the wide forward return frame produced by
``add_forward_returns`` and never modify it.

Segments
--------
all       : every trade day
new_high  : trade days flagged ``is_new_high``

Functions
---------
segment_average  : mean of non-null yr{h}_gain_perc for a segment
segment_median   : median of non-null yr{h}_gain_perc for a segment
segment_averages : segment × horizon table of means
segment_medians  : segment × horizon table of medians
yearly_rollup    : per calendar year trade counts and mean gains

Median conventions
------------------
``"true"``  : statistical median — mean of the two middle values when the
              count is even.
``"lower"`` : the largest value whose percent rank is <= 0.50, i.e. the
              lower-middle value ``sorted[(n - 1) // 2]``.  Reproduces a
              ``percent_rank() <= 0.5`` SQL cutoff.

Empty segments (e.g. a series with no new highs) yield ``None`` from the
scalar functions and NaN in the tables.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SEGMENTS = ("all", "new_high")
SEGMENT_LABELS = {"all": "all_trades", "new_high": "new_high_trades"}
MEDIAN_CONVENTIONS = ("true", "lower")


def _segment_rows(df: pd.DataFrame, segment: str) -> pd.DataFrame:
    if segment not in SEGMENTS:
        valid = ", ".join(SEGMENTS)
        raise ValueError(f"Unknown segment '{segment}'. Valid segments: {valid}")
    if segment == "new_high":
        return df[df["is_new_high"].astype(bool)]
    return df


def _gains(df: pd.DataFrame, segment: str, horizon: int) -> pd.Series:
    col = f"yr{horizon}_gain_perc"
    if col not in df.columns:
        raise KeyError(f"No '{col}' column — horizon {horizon}y was not computed")
    return _segment_rows(df, segment)[col].dropna()


def _median(values: np.ndarray, convention: str) -> float:
    values = np.sort(values)
    n = len(values)
    if convention == "lower":
        return float(values[(n - 1) // 2])
    mid = n // 2
    if n % 2:
        return float(values[mid])
    return float((values[mid - 1] + values[mid]) / 2)


# --------------------------------------------------------------------------- #
# Scalar aggregates                                                             #
# --------------------------------------------------------------------------- #


def segment_average(
    df: pd.DataFrame,
    segment: str,
    horizon: int,
) -> Optional[float]:
    """Arithmetic mean of non-null ``yr{horizon}_gain_perc`` for *segment*.

    Returns ``None`` when the segment has no non-null gains.
    """
    gains = _gains(df, segment, horizon)
    if gains.empty:
        return None
    return float(gains.mean())


def segment_median(
    df: pd.DataFrame,
    segment: str,
    horizon: int,
    convention: str = "true",
) -> Optional[float]:
    """Median of non-null ``yr{horizon}_gain_perc`` for *segment*.

    Parameters
    ----------
    convention:
        ``"true"`` or ``"lower"`` (see module docstring).

    Returns ``None`` when the segment has no non-null gains.
    """
    if convention not in MEDIAN_CONVENTIONS:
        valid = ", ".join(MEDIAN_CONVENTIONS)
        raise ValueError(
            f"Unknown median convention '{convention}'. Valid conventions: {valid}"
        )
    gains = _gains(df, segment, horizon)
    if gains.empty:
        return None
    return _median(gains.to_numpy(dtype="float64"), convention)


# --------------------------------------------------------------------------- #
# Summary tables                                                                #
# --------------------------------------------------------------------------- #


def _segment_table(df, horizons, func) -> pd.DataFrame:
    rows = {}
    for segment in SEGMENTS:
        values = {}
        for h in horizons:
            value = func(df, segment, h)
            values[f"yr{h}_gain_perc"] = np.nan if value is None else value
        rows[SEGMENT_LABELS[segment]] = values
    table = pd.DataFrame.from_dict(rows, orient="index")
    table.index.name = "segment"
    return table


def segment_averages(
    df: pd.DataFrame,
    horizons: Sequence[int] = (1, 3, 5),
) -> pd.DataFrame:
    """Mean gain per segment and horizon.

    Returns
    -------
    pd.DataFrame
        Indexed by ``segment`` (``all_trades``, ``new_high_trades``) with one
        ``yr{h}_gain_perc`` column per horizon.
    """
    table = _segment_table(df, horizons, segment_average)
    logger.debug("segment_averages:\n%s", table)
    return table


def segment_medians(
    df: pd.DataFrame,
    horizons: Sequence[int] = (1, 3, 5),
    convention: str = "true",
) -> pd.DataFrame:
    """Median gain per segment and horizon, laid out like :func:`segment_averages`."""
    table = _segment_table(
        df,
        horizons,
        lambda d, s, h: segment_median(d, s, h, convention=convention),
    )
    logger.debug("segment_medians (%s):\n%s", convention, table)
    return table


def yearly_rollup(
    df: pd.DataFrame,
    horizons: Sequence[int] = (1, 3, 5),
) -> pd.DataFrame:
    """Summarise trade counts and mean gains by calendar year of ``trade_date``.

    Returns
    -------
    pd.DataFrame
        One row per year, sorted ascending, with columns ``trade_year``,
        ``all_trades_ct``, ``new_high_trades_ct`` and, per horizon,
        ``all_trades_yr{h}_gain_perc`` and ``new_high_trades_yr{h}_gain_perc``.
        Means over years with no non-null gains are NaN.
    """
    work = pd.DataFrame(
        {
            "trade_year": df["trade_date"].dt.year.astype("int64"),
            "is_new_high": df["is_new_high"].astype(bool),
        }
    )
    for h in horizons:
        col = f"yr{h}_gain_perc"
        work[f"all_trades_yr{h}_gain_perc"] = df[col]
        # where() masks non-new-high days so mean() skips them
        work[f"new_high_trades_yr{h}_gain_perc"] = df[col].where(work["is_new_high"])

    g = work.groupby("trade_year", sort=True)
    rollup = pd.DataFrame(
        {
            "all_trades_ct": g.size(),
            "new_high_trades_ct": g["is_new_high"].sum().astype("int64"),
        }
    )
    for h in horizons:
        for label in ("all_trades", "new_high_trades"):
            col = f"{label}_yr{h}_gain_perc"
            rollup[col] = g[col].mean()

    rollup = rollup.reset_index()
    logger.debug("yearly_rollup: %d year(s)", len(rollup))
    return rollup
