"""Schema registry for ath_returns.

Defines Pandera schema contracts for each stage of the analysis: the raw
price series, the running-high annotation, and the forward return outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import pandera.pandas as pa

# Trade dates are calendar dates carried as tz-naive midnight timestamps.
# coerce=True lets Pandera convert between ns and us resolution.
_DATE_DTYPE = "datetime64[ns]"


@dataclass(frozen=True)
class DatasetSchema:
    name: str
    schema: pa.DataFrameSchema


_PRICE_COLUMNS = {
    "trade_date": pa.Column(_DATE_DTYPE, nullable=False, unique=True, coerce=True),
    "close_price": pa.Column(
        float, checks=pa.Check.gt(0), nullable=False, coerce=True
    ),
}

PRICE_SERIES_SCHEMA = DatasetSchema(
    name="price_series",
    schema=pa.DataFrameSchema(_PRICE_COLUMNS, strict=False),
)

ANNOTATED_SERIES_SCHEMA = DatasetSchema(
    name="annotated_series",
    schema=pa.DataFrameSchema(
        {
            **_PRICE_COLUMNS,
            "running_high": pa.Column(
                float, checks=pa.Check.gt(0), nullable=False, coerce=True
            ),
            "is_new_high": pa.Column(bool, nullable=False, coerce=True),
        },
        strict=False,
    ),
)

_SCHEMA_REGISTRY: Dict[str, DatasetSchema] = {
    "prices": PRICE_SERIES_SCHEMA,
    "annotated": ANNOTATED_SERIES_SCHEMA,
}


def outcome_schema(horizons: Sequence[int]) -> DatasetSchema:
    """Return the contract for a forward return frame covering *horizons*.

    Outcome columns are nullable: NaN marks a day whose horizon lies beyond
    the data or whose target date had no record inside the tolerance window.
    """
    columns = dict(ANNOTATED_SERIES_SCHEMA.schema.columns)
    for h in horizons:
        columns[f"yr{h}_target_date"] = pa.Column(_DATE_DTYPE, nullable=False, coerce=True)
        columns[f"yr{h}_match_date"] = pa.Column(_DATE_DTYPE, nullable=True, coerce=True)
        columns[f"yr{h}_close_price"] = pa.Column(float, nullable=True, coerce=True)
        columns[f"yr{h}_gain_dollars"] = pa.Column(float, nullable=True, coerce=True)
        columns[f"yr{h}_gain_perc"] = pa.Column(float, nullable=True, coerce=True)
    return DatasetSchema(
        name="return_outcomes",
        schema=pa.DataFrameSchema(columns, strict=False),
    )


def get_schema(layer: str) -> DatasetSchema:
    """Return the DatasetSchema for *layer*.

    Parameters
    ----------
    layer:
        One of ``"prices"`` or ``"annotated"``.  Outcome schemas depend on
        the horizons analysed; build them with :func:`outcome_schema`.

    Raises
    ------
    KeyError
        If *layer* is not registered.
    """
    try:
        return _SCHEMA_REGISTRY[layer]
    except KeyError:
        valid = ", ".join(sorted(_SCHEMA_REGISTRY))
        raise KeyError(f"Unknown layer '{layer}'. Valid layers: {valid}")
