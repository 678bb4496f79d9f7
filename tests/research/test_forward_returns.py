"""Tests for research/forward_returns.py.

Key invariants verified
-----------------------
1. gain_perc == round((future_close - close) / close, 4) for every non-null row
2. Rows later than max(trade_date) - h years are fully null, match or not
3. Missing matches propagate as nulls
4. Existing columns are not modified; reruns are identical
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal

import numpy as np
import pandas as pd
import pytest

from ath_returns.research.forward_returns import (
    SeriesBounds,
    add_forward_returns,
    compute_series_bounds,
    stack_outcomes,
)
from ath_returns.research.running_high import annotate_running_high
from ath_returns.series.store import PriceSeries


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _annotated(records) -> pd.DataFrame:
    return annotate_running_high(PriceSeries.from_records(records).frame)


def _row(df: pd.DataFrame, trade_date: str) -> pd.Series:
    return df.loc[df["trade_date"] == pd.Timestamp(trade_date)].iloc[0]


def _random_annotated(start: str = "2010-01-01", end: str = "2017-12-31", seed: int = 3):
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start, end)
    prices = 100 * np.exp(np.cumsum(rng.normal(0.0003, 0.01, len(dates))))
    return _annotated(zip(dates, prices.round(2)))


def _cents(price: float) -> Decimal:
    return Decimal(str(price)).quantize(Decimal("0.01"))


def _exact_gain_perc(source: float, future: float) -> float:
    ratio = (_cents(future) - _cents(source)) / _cents(source)
    return float(ratio.quantize(Decimal("0.0001"), rounding=ROUND_HALF_EVEN))


# ---------------------------------------------------------------------------
# compute_series_bounds
# ---------------------------------------------------------------------------


def test_bounds_subtract_whole_years_from_max_date():
    df = _annotated([("2010-01-04", 1.0), ("2020-08-26", 2.0)])
    bounds = compute_series_bounds(df)
    assert bounds.max_trade_date == pd.Timestamp("2020-08-26")
    assert bounds.bound_for(1) == pd.Timestamp("2019-08-26")
    assert bounds.bound_for(3) == pd.Timestamp("2017-08-26")
    assert bounds.bound_for(5) == pd.Timestamp("2015-08-26")


def test_bounds_from_leap_day():
    df = _annotated([("2016-01-04", 1.0), ("2020-02-29", 2.0)])
    bounds = compute_series_bounds(df, horizons=(1, 4))
    assert bounds.bound_for(1) == pd.Timestamp("2019-02-28")
    assert bounds.bound_for(4) == pd.Timestamp("2016-02-29")


def test_bound_for_unknown_horizon_raises():
    bounds = SeriesBounds(
        max_trade_date=pd.Timestamp("2020-01-01"),
        horizon_bounds={1: pd.Timestamp("2019-01-01")},
    )
    with pytest.raises(KeyError, match="Known horizons: 1"):
        bounds.bound_for(3)


def test_bounds_are_read_only():
    df = _annotated([("2010-01-04", 1.0), ("2020-08-26", 2.0)])
    bounds = compute_series_bounds(df)
    with pytest.raises(TypeError):
        bounds.horizon_bounds[1] = pd.Timestamp("2020-08-26")
    assert bounds.bound_for(1) == pd.Timestamp("2019-08-26")


def test_bounds_to_frame():
    df = _annotated([("2010-01-04", 1.0), ("2020-08-26", 2.0)])
    frame = compute_series_bounds(df).to_frame()
    assert frame["horizon"].tolist() == [1, 3, 5]
    assert (frame["max_trade_date"] == pd.Timestamp("2020-08-26")).all()


# ---------------------------------------------------------------------------
# Return calculation scenarios
# ---------------------------------------------------------------------------


def test_one_year_gain_uses_last_close_before_target():
    # Target 2021-01-01 falls on a holiday: 2020-12-31 is used
    df = _annotated(
        [("2020-01-01", 100.0), ("2020-12-31", 110.0), ("2021-01-04", 120.0)]
    )
    result = add_forward_returns(df, horizons=(1,))
    row = _row(result, "2020-01-01")
    assert row["yr1_match_date"] == pd.Timestamp("2020-12-31")
    assert row["yr1_close_price"] == 110.0
    assert row["yr1_gain_dollars"] == pytest.approx(10.0)
    assert row["yr1_gain_perc"] == pytest.approx(0.10)


def test_close_after_target_is_not_used():
    df = _annotated([("2020-01-01", 100.0), ("2021-01-02", 110.0)])
    result = add_forward_returns(df, horizons=(1,))
    row = _row(result, "2020-01-01")
    assert pd.isna(row["yr1_match_date"])
    assert pd.isna(row["yr1_close_price"])
    assert pd.isna(row["yr1_gain_dollars"])
    assert pd.isna(row["yr1_gain_perc"])


def test_source_after_bound_is_null_without_match():
    df = _annotated(
        [("2015-08-20", 100.0), ("2020-08-20", 200.0), ("2020-08-26", 210.0)]
    )
    result = add_forward_returns(df, horizons=(5,))

    late = _row(result, "2020-08-20")
    assert pd.isna(late["yr5_gain_perc"])
    assert pd.isna(late["yr5_close_price"])

    early = _row(result, "2015-08-20")
    assert early["yr5_close_price"] == 200.0
    assert early["yr5_gain_perc"] == pytest.approx(1.0)


def test_source_after_bound_is_null_even_when_match_exists():
    # Bound for 1y is 2020-01-08; 2020-01-10 still finds 2021-01-08
    df = _annotated(
        [("2020-01-10", 100.0), ("2021-01-05", 110.0), ("2021-01-08", 115.0)]
    )
    result = add_forward_returns(df, horizons=(1,))
    row = _row(result, "2020-01-10")
    assert row["yr1_match_date"] == pd.Timestamp("2021-01-08")
    assert pd.isna(row["yr1_close_price"])
    assert pd.isna(row["yr1_gain_dollars"])
    assert pd.isna(row["yr1_gain_perc"])


def test_gap_wider_than_tolerance_gives_null():
    # Target 2021-03-01; nothing between 2021-02-19 and 2021-03-01
    df = _annotated(
        [
            ("2020-03-01", 100.0),
            ("2021-02-15", 105.0),
            ("2021-03-10", 106.0),
            ("2021-06-01", 107.0),
        ]
    )
    result = add_forward_returns(df, horizons=(1,))
    assert pd.isna(_row(result, "2020-03-01")["yr1_gain_perc"])


def test_single_record_series_is_all_null():
    df = _annotated([("2020-01-01", 100.0)])
    result = add_forward_returns(df)
    assert not result["is_new_high"].iloc[0]
    for h in (1, 3, 5):
        for col in ("close_price", "gain_dollars", "gain_perc"):
            assert pd.isna(result[f"yr{h}_{col}"].iloc[0])


def test_gain_perc_rounded_to_four_places():
    df = _annotated([("2019-01-02", 300.0), ("2020-01-02", 301.0)])
    result = add_forward_returns(df, horizons=(1,))
    assert _row(result, "2019-01-02")["yr1_gain_perc"] == pytest.approx(0.0033)


@pytest.mark.parametrize(
    "source, future, expected",
    [
        (40.00, 40.09, 0.0022),
        (40.00, 40.11, 0.0028),
        (40.00, 40.13, 0.0032),
        (40.00, 39.91, -0.0022),
        (40.00, 39.89, -0.0028),
    ],
)
def test_gain_perc_ties_round_half_to_even(source, future, expected):
    df = _annotated([("2019-01-02", source), ("2020-01-02", future)])
    result = add_forward_returns(df, horizons=(1,))
    assert _row(result, "2019-01-02")["yr1_gain_perc"] == expected


def test_gain_perc_matches_exact_rounding_over_price_grid():
    for source in ("16.00", "40.00", "80.00", "125.00", "400.00"):
        for cents in range(1, 400, 7):
            future = float(Decimal(source) + Decimal(cents) / 100)
            df = _annotated([("2019-01-02", float(source)), ("2020-01-02", future)])
            result = add_forward_returns(df, horizons=(1,))
            got = _row(result, "2019-01-02")["yr1_gain_perc"]
            assert got == _exact_gain_perc(float(source), future), (source, future)


def test_gain_dollars_rounded_to_cents():
    df = _annotated([("2019-01-02", 100.0), ("2020-01-02", 101.1)])
    result = add_forward_returns(df, horizons=(1,))
    assert _row(result, "2019-01-02")["yr1_gain_dollars"] == 1.1


def test_negative_gain():
    df = _annotated([("2019-01-02", 200.0), ("2020-01-02", 150.0)])
    result = add_forward_returns(df, horizons=(1,))
    row = _row(result, "2019-01-02")
    assert row["yr1_gain_dollars"] == pytest.approx(-50.0)
    assert row["yr1_gain_perc"] == pytest.approx(-0.25)


# ---------------------------------------------------------------------------
# Invariants over a long series
# ---------------------------------------------------------------------------


def test_gain_perc_formula_holds_for_all_rows():
    df = _random_annotated()
    result = add_forward_returns(df)
    for h in (1, 3, 5):
        valid = result.dropna(subset=[f"yr{h}_gain_perc"])
        assert not valid.empty
        expected = [
            _exact_gain_perc(source, future)
            for source, future in zip(valid["close_price"], valid[f"yr{h}_close_price"])
        ]
        assert valid[f"yr{h}_gain_perc"].tolist() == expected
        dollars = [
            float(_cents(future) - _cents(source))
            for source, future in zip(valid["close_price"], valid[f"yr{h}_close_price"])
        ]
        assert valid[f"yr{h}_gain_dollars"].tolist() == dollars


def test_rows_beyond_bound_fully_null():
    df = _random_annotated()
    bounds = compute_series_bounds(df)
    result = add_forward_returns(df, bounds=bounds)
    for h in (1, 3, 5):
        late = result[result["trade_date"] > bounds.bound_for(h)]
        assert not late.empty
        cols = [f"yr{h}_close_price", f"yr{h}_gain_dollars", f"yr{h}_gain_perc"]
        assert late[cols].isna().all().all()


def test_business_day_calendar_always_matches_within_bound():
    df = _random_annotated()
    bounds = compute_series_bounds(df)
    result = add_forward_returns(df, bounds=bounds)
    for h in (1, 3, 5):
        early = result[result["trade_date"] <= bounds.bound_for(h)]
        assert early[f"yr{h}_gain_perc"].notna().all()


def test_existing_columns_not_modified():
    df = _random_annotated(end="2013-12-31")
    result = add_forward_returns(df)
    for col in ["trade_date", "close_price", "running_high", "is_new_high"]:
        pd.testing.assert_series_equal(df[col], result[col])


def test_input_not_modified():
    df = _random_annotated(end="2012-12-31")
    before = df.copy()
    add_forward_returns(df)
    pd.testing.assert_frame_equal(df, before)


def test_rerun_is_identical():
    df = _random_annotated()
    pd.testing.assert_frame_equal(add_forward_returns(df), add_forward_returns(df))


def test_null_source_close_is_fatal():
    df = _annotated([("2019-01-02", 100.0), ("2020-01-02", 110.0)])
    df.loc[0, "close_price"] = np.nan
    with pytest.raises(RuntimeError, match="Null source close"):
        add_forward_returns(df)


# ---------------------------------------------------------------------------
# stack_outcomes
# ---------------------------------------------------------------------------


def test_stack_outcomes_one_row_per_day_and_horizon():
    df = _random_annotated(end="2016-12-31")
    wide = add_forward_returns(df)
    long_df = stack_outcomes(wide)

    assert len(long_df) == 3 * len(wide)
    assert list(long_df.columns) == [
        "trade_date",
        "close_price",
        "running_high",
        "is_new_high",
        "horizon",
        "target_date",
        "match_date",
        "future_close_price",
        "gain_dollars",
        "gain_perc",
    ]
    assert long_df["horizon"].tolist()[:3] == [1, 3, 5]
    assert long_df["trade_date"].is_monotonic_increasing


def test_stack_outcomes_values_match_wide_columns():
    df = _random_annotated(end="2016-12-31")
    wide = add_forward_returns(df)
    long_df = stack_outcomes(wide)

    three = long_df[long_df["horizon"] == 3].reset_index(drop=True)
    pd.testing.assert_series_equal(
        three["gain_perc"], wide["yr3_gain_perc"], check_names=False
    )
