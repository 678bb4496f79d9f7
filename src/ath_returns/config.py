"""Analysis configuration.

Settings live in a flat YAML mapping (``config/analysis.yaml``)::

    symbol: SPX
    horizons: [1, 3, 5]
    tolerance_days: 10
    price_decimals: 2
    percent_decimals: 4
    median_convention: "true"
    first_is_new_high: false

Every key is optional; omitted keys keep their defaults.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ath_returns.analytics.aggregates import MEDIAN_CONVENTIONS
from ath_returns.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "analysis.yaml"


@dataclass(frozen=True)
class AnalysisConfig:
    symbol: str = "SPX"
    horizons: Tuple[int, ...] = (1, 3, 5)
    tolerance_days: int = 10
    price_decimals: int = 2
    percent_decimals: int = 4
    median_convention: str = "true"
    first_is_new_high: bool = False

    def __post_init__(self) -> None:
        horizons = tuple(self.horizons)
        if not horizons:
            raise ConfigError("horizons must list at least one horizon")
        for h in horizons:
            if isinstance(h, bool) or not isinstance(h, int) or h <= 0:
                raise ConfigError(f"horizons must be positive integers, got {h!r}")
        if len(set(horizons)) != len(horizons):
            raise ConfigError(f"horizons must be unique, got {list(horizons)}")
        # Frozen dataclass: normalise lists from YAML to a sorted tuple
        object.__setattr__(self, "horizons", tuple(sorted(horizons)))

        for name in ("tolerance_days", "price_decimals", "percent_decimals"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")

        if self.median_convention not in MEDIAN_CONVENTIONS:
            valid = ", ".join(MEDIAN_CONVENTIONS)
            raise ConfigError(
                f"Unknown median_convention '{self.median_convention}'. "
                f"Valid conventions: {valid}"
            )
        if not isinstance(self.first_is_new_high, bool):
            raise ConfigError(
                f"first_is_new_high must be a boolean, got {self.first_is_new_high!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["horizons"] = list(self.horizons)
        return d


def config_from_dict(data: Optional[Dict[str, Any]]) -> AnalysisConfig:
    """Build an :class:`AnalysisConfig` from a mapping, rejecting unknown keys."""
    data = dict(data or {})
    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(
            f"Unknown config key(s): {', '.join(unknown)}. "
            f"Valid keys: {', '.join(sorted(known))}"
        )
    if "median_convention" in data:
        # YAML reads an unquoted `true` as a boolean
        data["median_convention"] = str(data["median_convention"]).lower()
    if "horizons" in data:
        if not isinstance(data["horizons"], (list, tuple)):
            raise ConfigError(f"horizons must be a list, got {data['horizons']!r}")
        data["horizons"] = tuple(data["horizons"])
    return AnalysisConfig(**data)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AnalysisConfig:
    """Load an :class:`AnalysisConfig` from the YAML file at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, is not a mapping, or holds invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    config = config_from_dict(data)
    logger.debug("Loaded config from %s: %s", path, config)
    return config
