"""Data quality checks for a daily-close price series.

Each check returns a CheckResult.  run_all_checks() aggregates them into a
QualityReport.  Checks report problems; they never raise.

Checks
------
check_price_sanity  no NULLs, close_price > 0, unique trade dates
check_gaps          calendar gaps longer than the forward-match tolerance
check_coverage      series span long enough for each forward horizon
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from ath_returns.research.forward_match import DEFAULT_TOLERANCE_DAYS, add_years

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str
    detail: Optional[pd.DataFrame] = field(default=None, repr=False)


@dataclass
class QualityReport:
    symbol: str
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"QualityReport [{status}] symbol={self.symbol}"]
        for c in self.checks:
            mark = "✓" if c.passed else "✗"
            lines.append(f"  {mark} {c.name}: {c.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def check_price_sanity(df: pd.DataFrame) -> CheckResult:
    """Verify the series has usable prices and one record per date.

    Rules
    -----
    - No NULLs in trade_date or close_price
    - close_price > 0
    - trade_date unique
    """
    issues = []

    null_counts = df[["trade_date", "close_price"]].isnull().sum()
    null_cols = null_counts[null_counts > 0]
    if not null_cols.empty:
        issues.append(f"NULLs in {null_cols.to_dict()}")

    bad_price = df[df["close_price"] <= 0]
    if not bad_price.empty:
        issues.append(f"{len(bad_price)} row(s) with non-positive close")

    dupes = df["trade_date"].dropna().duplicated().sum()
    if dupes:
        issues.append(f"{dupes} duplicated trade date(s)")

    if issues:
        return CheckResult(
            name="price_sanity",
            passed=False,
            message="; ".join(issues),
        )
    return CheckResult(
        name="price_sanity",
        passed=True,
        message=f"All {len(df)} rows pass price sanity",
    )


def check_gaps(
    df: pd.DataFrame,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> CheckResult:
    """Detect runs of more than *tolerance_days* calendar days without a record.

    A forward target date falling inside such a gap has no record in its
    tolerance window, so its outcome will be null.

    Parameters
    ----------
    df:
        Series frame with a ``trade_date`` column.
    tolerance_days:
        Trailing window used by the forward-date matcher.
    """
    if len(df) < 2:
        return CheckResult(name="gaps", passed=True, message="No gaps to check")

    dates = pd.to_datetime(df["trade_date"]).sort_values().reset_index(drop=True)
    # Calendar days with no record between consecutive trade dates
    empty_days = dates.diff().dt.days - 1
    wide = empty_days > tolerance_days

    if wide.any():
        detail = pd.DataFrame(
            {
                "gap_start": dates.shift(1)[wide].to_numpy(),
                "gap_end": dates[wide].to_numpy(),
                "gap_days": empty_days[wide].astype("int64").to_numpy(),
            }
        )
        shown = [
            f"{s.date()}→{e.date()}"
            for s, e in zip(detail["gap_start"].iloc[:10], detail["gap_end"].iloc[:10])
        ]
        suffix = " (showing first 10)" if len(detail) > 10 else ""
        return CheckResult(
            name="gaps",
            passed=False,
            message=(
                f"{len(detail)} gap(s) longer than {tolerance_days} day(s){suffix}: "
                + ", ".join(shown)
            ),
            detail=detail,
        )

    return CheckResult(
        name="gaps",
        passed=True,
        message=f"No gaps longer than {tolerance_days} day(s)",
    )


def check_coverage(
    df: pd.DataFrame,
    horizons: Sequence[int] = (1, 3, 5),
) -> CheckResult:
    """Check that the series spans at least the longest forward horizon.

    Horizons longer than the series produce only null outcomes.
    """
    if df.empty:
        return CheckResult(name="coverage", passed=False, message="No data")

    first = pd.Timestamp(df["trade_date"].min())
    last = pd.Timestamp(df["trade_date"].max())
    anchor = pd.Series([first])
    uncovered = [
        h for h in horizons if add_years(anchor, h).iloc[0] > last
    ]

    if uncovered:
        return CheckResult(
            name="coverage",
            passed=False,
            message=(
                f"Series {first.date()} → {last.date()} is too short for "
                f"horizon(s) {', '.join(f'{h}y' for h in uncovered)}"
            ),
        )
    return CheckResult(
        name="coverage",
        passed=True,
        message=f"Series {first.date()} → {last.date()} covers all horizons",
    )


# ---------------------------------------------------------------------------
# Aggregate runner
# ---------------------------------------------------------------------------


def run_all_checks(
    df: pd.DataFrame,
    symbol: str,
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
    horizons: Sequence[int] = (1, 3, 5),
) -> QualityReport:
    """Run all quality checks for *symbol* and return a QualityReport.

    Parameters
    ----------
    df:
        Price series frame (``trade_date``, ``close_price``).
    symbol:
        Symbol name (used for labelling the report).
    tolerance_days:
        Gap threshold in calendar days.
    horizons:
        Forward horizons the series must cover.
    """
    report = QualityReport(symbol=symbol)
    report.checks.append(check_price_sanity(df))
    report.checks.append(check_gaps(df, tolerance_days=tolerance_days))
    report.checks.append(check_coverage(df, horizons=horizons))
    logger.info(report.summary())
    return report
