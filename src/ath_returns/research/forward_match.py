"""Forward-date matching.

For every record and a horizon of *h* years, find the record that stands in
for "the close *h* years later":

target  = trade_date + h years
match   = the record with the latest trade_date in [target - tolerance, target]

The trailing tolerance window absorbs weekends and holidays: when the target
date itself was not a trading day, the last close before it is used, provided
it is no more than ``tolerance_days`` old.  When nothing falls inside the
window the match is absent (NaT / <NA>), which is the normal outcome for the
last *h* years of any series.

Matching is a binary search over the sorted trade dates
(``np.searchsorted(..., side="right") - 1`` yields the latest date not after
the target), so the whole series is matched in O(n log n).

Calendar-year addition uses ``pd.DateOffset(years=h)``.  A Feb 29 trade date
whose target year is not a leap year maps to Feb 28.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_DAYS: int = 10


def add_years(dates: pd.Series, years: int) -> pd.Series:
    """Shift *dates* by a whole number of calendar years (Feb 29 → Feb 28)."""
    return (dates + pd.DateOffset(years=years)).astype("datetime64[ns]")


def match_forward_dates(
    df: pd.DataFrame,
    horizon_years: int,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> pd.DataFrame:
    """Locate the forward record for every row of *df*.

    Parameters
    ----------
    df:
        Series frame sorted ascending by unique ``trade_date``.
    horizon_years:
        Forward offset in whole years.  Must be positive.
    tolerance_days:
        Width of the trailing search window ending at the target date.

    Returns
    -------
    pd.DataFrame
        Indexed like *df* with columns:

        ``yr{h}_target_date`` : trade_date + h years
        ``yr{h}_match_date``  : matched trade_date, NaT when absent
        ``yr{h}_match_pos``   : row position of the match in *df*
                                (nullable Int64, <NA> when absent)
    """
    if horizon_years <= 0:
        raise ValueError(f"horizon_years must be positive, got {horizon_years}")
    if tolerance_days < 0:
        raise ValueError(f"tolerance_days must be >= 0, got {tolerance_days}")

    prefix = f"yr{horizon_years}"
    trade_dates = df["trade_date"].to_numpy(dtype="datetime64[ns]")

    target = add_years(df["trade_date"], horizon_years)
    target_arr = target.to_numpy(dtype="datetime64[ns]")
    window_start = target_arr - np.timedelta64(tolerance_days, "D")

    # Latest trade date <= target
    pos = np.searchsorted(trade_dates, target_arr, side="right") - 1
    found = pos >= 0
    candidate = trade_dates[np.where(found, pos, 0)]
    found &= candidate >= window_start

    match_dates = np.where(found, candidate, np.datetime64("NaT", "ns"))
    match_pos = pd.array(np.where(found, pos, 0), dtype="Int64")
    match_pos[~found] = pd.NA

    result = pd.DataFrame(
        {
            f"{prefix}_target_date": target.to_numpy(dtype="datetime64[ns]"),
            f"{prefix}_match_date": match_dates,
            f"{prefix}_match_pos": match_pos,
        },
        index=df.index,
    )

    logger.debug(
        "match_forward_dates: horizon=%dy, tolerance=%dd, %d/%d matched",
        horizon_years,
        tolerance_days,
        int(found.sum()),
        len(df),
    )
    return result
