#!/usr/bin/env python3
"""
Ranking Configuration

Loads the YAML configuration for the power rankings and standings pipeline
into an explicit ``RankingConfig`` struct that is passed to every engine.
Keys in the YAML file are UPPER_CASE and map one-to-one onto the lower-case
dataclass attributes.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import pandas as pd
import yaml

from league_rankings.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "ranking_config.yaml"

REGULAR_SEASON = "RS"
PLAYOFFS = "PO"
LOSERS_TOURNAMENT = "LT"
SEASON_TYPES = (REGULAR_SEASON, PLAYOFFS, LOSERS_TOURNAMENT)


@dataclass(frozen=True)
class CategoryRule:
    """One scoring category of a head-to-head matchup."""
    field: str
    higher_better: bool = True
    goalie_only: bool = False


DEFAULT_CATEGORY_RULES = [
    CategoryRule("G"),
    CategoryRule("A"),
    CategoryRule("P"),
    CategoryRule("PPP"),
    CategoryRule("SOG"),
    CategoryRule("HIT"),
    CategoryRule("BLK"),
    CategoryRule("W", higher_better=True, goalie_only=True),
    CategoryRule("GAA", higher_better=False, goalie_only=True),
    CategoryRule("SVP", higher_better=True, goalie_only=True),
]

# Used when no category rules are configured
FALLBACK_CATEGORY_COUNT = 10


@dataclass
class RankingConfig:
    """Tunable parameters for one ranking run."""

    # Elo
    base_elo: float = 1500.0
    elo_scale: float = 400.0
    base_k: float = 20.0
    margin_k_multiplier: float = 0.5
    elo_margin_weight: float = 0.75

    # Week-type K multipliers
    regular_season_k_multiplier: float = 1.0
    losers_k_multiplier: float = 0.5
    playoff_k_multiplier: float = 1.25
    playoff_round_step: float = 0.25

    # Performance
    ewma_alpha: float = 0.35
    perf_category_weight: float = 0.45
    perf_rating_weight: float = 0.35
    perf_matchup_points_weight: float = 0.10
    perf_matchup_margin_weight: float = 0.10
    perf_talent_weight: float = 0.0
    talent_field: Optional[str] = None
    rating_field: str = "Rating"

    # Composite
    w_elo: float = 0.7
    w_stat: float = 0.3

    # Matchup scoring
    goalie_start_minimum: float = 2
    category_rules: List[CategoryRule] = field(default_factory=lambda: list(DEFAULT_CATEGORY_RULES))

    # Run scope
    season_type: Optional[str] = None
    today: Optional[date] = None
    dry_run: bool = False
    verbose: bool = False

    @property
    def category_count(self) -> int:
        return len(self.category_rules) or FALLBACK_CATEGORY_COUNT

    @property
    def category_fields(self) -> List[str]:
        return [rule.field for rule in self.category_rules]

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RankingConfig":
        """
        Build a config from an UPPER_CASE mapping.

        Args:
            raw: Mapping as loaded from YAML

        Returns:
            Validated RankingConfig

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (raw or {}).items():
            name = str(key).lower()
            if name not in known:
                raise ConfigurationError(f"Unknown configuration key: {key}")
            kwargs[name] = value

        if "category_rules" in kwargs:
            kwargs["category_rules"] = _parse_category_rules(kwargs["category_rules"])
        if kwargs.get("today") is not None:
            kwargs["today"] = _parse_date(kwargs["today"])
        if kwargs.get("season_type") is not None:
            kwargs["season_type"] = str(kwargs["season_type"]).upper()

        config = cls(**kwargs)
        config.validate()
        return config

    def with_overrides(self, overrides: Dict[str, Any]) -> "RankingConfig":
        """Return a copy with UPPER_CASE overrides applied."""
        merged = self.to_dict()
        merged.update({str(k).upper(): v for k, v in (overrides or {}).items()})
        return RankingConfig.from_dict(merged)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the UPPER_CASE YAML layout."""
        out = {}
        for name, value in asdict(self).items():
            if name == "category_rules":
                value = [dict(rule) for rule in value]
            elif name == "today" and value is not None:
                value = value.isoformat()
            out[name.upper()] = value
        return out

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: If any value is out of range
        """
        numeric = {
            "base_elo": self.base_elo,
            "elo_scale": self.elo_scale,
            "base_k": self.base_k,
            "margin_k_multiplier": self.margin_k_multiplier,
            "elo_margin_weight": self.elo_margin_weight,
            "regular_season_k_multiplier": self.regular_season_k_multiplier,
            "losers_k_multiplier": self.losers_k_multiplier,
            "playoff_k_multiplier": self.playoff_k_multiplier,
            "playoff_round_step": self.playoff_round_step,
            "ewma_alpha": self.ewma_alpha,
            "perf_category_weight": self.perf_category_weight,
            "perf_rating_weight": self.perf_rating_weight,
            "perf_matchup_points_weight": self.perf_matchup_points_weight,
            "perf_matchup_margin_weight": self.perf_matchup_margin_weight,
            "perf_talent_weight": self.perf_talent_weight,
            "w_elo": self.w_elo,
            "w_stat": self.w_stat,
            "goalie_start_minimum": self.goalie_start_minimum,
        }
        for name, value in numeric.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or pd.isna(value):
                raise ConfigurationError(f"{name.upper()} must be a number, got {value!r}")
            if name != "base_elo" and value < 0:
                raise ConfigurationError(f"{name.upper()} must be non-negative, got {value}")

        if self.elo_scale <= 0:
            raise ConfigurationError("ELO_SCALE must be positive")
        if not 0 < self.ewma_alpha <= 1:
            raise ConfigurationError(f"EWMA_ALPHA must be in (0, 1], got {self.ewma_alpha}")
        if self.elo_margin_weight > 1:
            raise ConfigurationError(f"ELO_MARGIN_WEIGHT must be in [0, 1], got {self.elo_margin_weight}")
        if self.perf_talent_weight >= 1:
            raise ConfigurationError(f"PERF_TALENT_WEIGHT must be in [0, 1), got {self.perf_talent_weight}")
        if self.perf_talent_weight > 0 and not self.talent_field:
            raise ConfigurationError("TALENT_FIELD is required when PERF_TALENT_WEIGHT > 0")
        if self.season_type is not None and self.season_type not in SEASON_TYPES:
            raise ConfigurationError(
                f"SEASON_TYPE must be one of {', '.join(SEASON_TYPES)}, got {self.season_type!r}"
            )
        if not self.rating_field:
            raise ConfigurationError("RATING_FIELD must be set")

        seen = set()
        for rule in self.category_rules:
            if not isinstance(rule, CategoryRule):
                raise ConfigurationError(f"Invalid category rule: {rule!r}")
            if rule.field in seen:
                raise ConfigurationError(f"Duplicate category rule: {rule.field}")
            seen.add(rule.field)


def _parse_category_rules(entries: Any) -> List[CategoryRule]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError("CATEGORY_RULES must be a list")

    rules = []
    for entry in entries:
        if isinstance(entry, CategoryRule):
            rules.append(entry)
            continue
        if not isinstance(entry, dict) or not entry.get("field"):
            raise ConfigurationError(f"Invalid category rule: {entry!r}")
        rules.append(CategoryRule(
            field=str(entry["field"]),
            higher_better=bool(entry.get("higher_better", True)),
            goalie_only=bool(entry.get("goalie_only", False)),
        ))
    return rules


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return pd.Timestamp(str(value)).date()
    except ValueError as e:
        raise ConfigurationError(f"TODAY must be a YYYY-MM-DD date, got {value!r}") from e


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration in {path} must be a mapping")
    return raw


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> RankingConfig:
    """
    Load the ranking configuration.

    The packaged defaults are always read first so a custom file only needs
    the keys it changes.

    Args:
        path: Optional YAML file layered over the packaged defaults
        overrides: Optional UPPER_CASE overrides applied last

    Returns:
        Validated RankingConfig
    """
    raw = load_yaml(DEFAULT_CONFIG_PATH)
    if path is not None:
        raw.update(load_yaml(path))
        logger.info(f"Loaded configuration from {path}")
    if overrides:
        raw.update({str(k).upper(): v for k, v in overrides.items()})
    return RankingConfig.from_dict(raw)
