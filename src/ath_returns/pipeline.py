"""End-to-end forward return analysis.

Runs the stages in order, each consuming the previous stage's output::

    series   = PriceSeries.from_frame(prices_df)
    result   = run_analysis(series, config)
    print(result.summary())

Stages
------
1. quality report       run_all_checks on the raw series (logged, non-fatal)
2. running high         annotate_running_high
3. bounds               compute_series_bounds
4. forward returns      add_forward_returns (matching + gains)
5. aggregation          segment_averages, segment_medians, yearly_rollup

The run is a pure function of the input series and config: repeated runs
return identical frames.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
from pandera.errors import SchemaError, SchemaErrors

from ath_returns.analytics.aggregates import (
    segment_averages,
    segment_medians,
    yearly_rollup,
)
from ath_returns.config import AnalysisConfig
from ath_returns.exceptions import SeriesValidationError
from ath_returns.quality.checks import QualityReport, run_all_checks
from ath_returns.research.forward_returns import (
    SeriesBounds,
    add_forward_returns,
    compute_series_bounds,
    stack_outcomes,
)
from ath_returns.research.running_high import annotate_running_high
from ath_returns.series.store import PriceSeries
from ath_returns.storage.schema_registry import (
    DatasetSchema,
    get_schema,
    outcome_schema,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outputs of :func:`run_analysis`.

    Attributes
    ----------
    outcomes:
        One row per trade day: price, running high, new-high flag and the
        ``yr{h}_*`` match and return columns for every horizon.
    bounds:
        Latest trustworthy source date per horizon.
    averages:
        Segment × horizon mean gains (see ``segment_averages``).
    medians:
        Segment × horizon median gains (see ``segment_medians``).
    yearly:
        Per-year trade counts and mean gains (see ``yearly_rollup``).
    quality:
        Data quality report for the input series.
    config:
        Settings the run used.
    """

    outcomes: pd.DataFrame
    bounds: SeriesBounds
    averages: pd.DataFrame
    medians: pd.DataFrame
    yearly: pd.DataFrame
    quality: QualityReport
    config: AnalysisConfig = field(default_factory=AnalysisConfig)

    def long_outcomes(self) -> pd.DataFrame:
        """Outcomes with one row per (trade day, horizon)."""
        return stack_outcomes(self.outcomes, self.config.horizons)

    def summary(self) -> str:
        n_days = len(self.outcomes)
        n_high = int(self.outcomes["is_new_high"].sum())
        lines = [
            f"AnalysisResult symbol={self.config.symbol}",
            f"  Trade days        : {n_days}",
            f"  New-high days     : {n_high}",
            f"  Date range        : {self.outcomes['trade_date'].iloc[0].date()}"
            f" → {self.bounds.max_trade_date.date()}",
        ]
        for h in self.config.horizons:
            col = f"yr{h}_gain_perc"
            lines.append(f"  {h}y horizon (source dates ≤ {self.bounds.bound_for(h).date()})")
            for label in self.averages.index:
                avg = self.averages.loc[label, col]
                med = self.medians.loc[label, col]
                lines.append(
                    f"    {label:<16}: mean {_fmt_pct(avg)}  "
                    f"median {_fmt_pct(med)} ({self.config.median_convention})"
                )
        return "\n".join(lines)


def _fmt_pct(value: float) -> str:
    if pd.isna(value):
        return "    n/a"
    return f"{value:+.2%}"


def _check_contract(df: pd.DataFrame, contract: DatasetSchema) -> None:
    try:
        contract.schema.validate(df)
    except (SchemaError, SchemaErrors) as exc:
        raise SeriesValidationError(
            f"{contract.name} schema validation failed: {exc}"
        ) from exc


def run_analysis(
    series: PriceSeries,
    config: Optional[AnalysisConfig] = None,
) -> AnalysisResult:
    """Compute forward returns and their summaries for *series*.

    Parameters
    ----------
    series:
        Validated price series.
    config:
        Analysis settings.  Defaults to ``AnalysisConfig()``
        (1/3/5-year horizons, 10-day tolerance).

    Returns
    -------
    AnalysisResult
    """
    config = config or AnalysisConfig()
    prices = series.frame

    quality = run_all_checks(
        prices,
        symbol=config.symbol,
        tolerance_days=config.tolerance_days,
        horizons=config.horizons,
    )
    if not quality.passed:
        logger.warning(
            "Quality checks failed for %s: %s",
            config.symbol,
            ", ".join(c.name for c in quality.failed_checks),
        )

    annotated = annotate_running_high(
        prices, first_is_new_high=config.first_is_new_high
    )
    _check_contract(annotated, get_schema("annotated"))
    bounds = compute_series_bounds(annotated, config.horizons)
    outcomes = add_forward_returns(
        annotated,
        horizons=config.horizons,
        tolerance_days=config.tolerance_days,
        bounds=bounds,
        price_decimals=config.price_decimals,
        percent_decimals=config.percent_decimals,
    )

    _check_contract(outcomes, outcome_schema(config.horizons))

    result = AnalysisResult(
        outcomes=outcomes,
        bounds=bounds,
        averages=segment_averages(outcomes, config.horizons),
        medians=segment_medians(
            outcomes, config.horizons, convention=config.median_convention
        ),
        yearly=yearly_rollup(outcomes, config.horizons),
        quality=quality,
        config=config,
    )
    logger.info(result.summary())
    return result
