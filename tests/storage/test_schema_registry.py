"""Tests for the Pandera schema registry."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from pandera.errors import SchemaError

from ath_returns.storage.schema_registry import (
    ANNOTATED_SERIES_SCHEMA,
    PRICE_SERIES_SCHEMA,
    get_schema,
    outcome_schema,
)


def _prices() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "trade_date": pd.to_datetime(["2020-01-01", "2020-01-02"]),
            "close_price": [100.0, 101.0],
        }
    )


def test_get_schema_known_layers():
    assert get_schema("prices") is PRICE_SERIES_SCHEMA
    assert get_schema("annotated") is ANNOTATED_SERIES_SCHEMA


def test_get_schema_unknown_layer_raises():
    with pytest.raises(KeyError, match="Valid layers: annotated, prices"):
        get_schema("raw")


def test_price_schema_accepts_valid_frame():
    PRICE_SERIES_SCHEMA.schema.validate(_prices())


def test_price_schema_rejects_non_positive_close():
    df = _prices()
    df.loc[1, "close_price"] = 0.0
    with pytest.raises(SchemaError):
        PRICE_SERIES_SCHEMA.schema.validate(df)


def test_price_schema_rejects_duplicate_dates():
    df = _prices()
    df.loc[1, "trade_date"] = df.loc[0, "trade_date"]
    with pytest.raises(SchemaError):
        PRICE_SERIES_SCHEMA.schema.validate(df)


def test_outcome_schema_allows_null_outcomes():
    df = _prices().assign(
        running_high=[100.0, 101.0],
        is_new_high=[False, True],
        yr1_target_date=pd.to_datetime(["2021-01-01", "2021-01-02"]),
        yr1_match_date=pd.to_datetime([pd.NaT, pd.NaT]),
        yr1_close_price=np.nan,
        yr1_gain_dollars=np.nan,
        yr1_gain_perc=np.nan,
    )
    outcome_schema((1,)).schema.validate(df)


def test_outcome_schema_requires_horizon_columns():
    df = _prices().assign(running_high=[100.0, 101.0], is_new_high=[False, True])
    with pytest.raises(SchemaError):
        outcome_schema((3,)).schema.validate(df)
