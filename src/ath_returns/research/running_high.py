"""Running all-time-high annotation.

Adds two columns to a date-sorted price series:

running_high : max(close_price) over every record up to and including the day
is_new_high  : True iff running_high strictly increased versus the previous
               record

The first record has no previous running high to compare against.  It is
flagged ``False`` by default; pass ``first_is_new_high=True`` to flag it as a
new high instead (the behaviour of an equality test against a missing value).

Point-in-time safety
--------------------
Both columns at day *t* depend only on records at *t* and earlier, so
appending later records never changes existing annotations.
"""

from __future__ import annotations

import logging

import pandas as pd

logger = logging.getLogger(__name__)


def annotate_running_high(
    df: pd.DataFrame,
    first_is_new_high: bool = False,
) -> pd.DataFrame:
    """Append ``running_high`` and ``is_new_high`` to *df*.

    Parameters
    ----------
    df:
        Price series frame with ``trade_date`` and ``close_price`` columns
        (typically ``PriceSeries.frame``).
    first_is_new_high:
        Flag value for the first record.

    Returns
    -------
    pd.DataFrame
        Copy of *df* sorted by ``trade_date`` with the two columns appended.
        Same length as *df*.
    """
    df = df.sort_values("trade_date").reset_index(drop=True).copy()

    df["running_high"] = df["close_price"].cummax()

    prev_high = df["running_high"].shift(1)
    df["is_new_high"] = (df["running_high"] > prev_high).astype(bool)
    if not df.empty:
        df.loc[0, "is_new_high"] = bool(first_is_new_high)

    logger.debug(
        "annotate_running_high: %d rows, %d new high(s)",
        len(df),
        int(df["is_new_high"].sum()),
    )
    return df
