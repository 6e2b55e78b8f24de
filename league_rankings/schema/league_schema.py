#!/usr/bin/env python3
"""
League Table Schema Definitions

Defines the canonical schemas for the league tables read by the ranking
pipeline (teams, weeks, matchups, team and player week stat lines) using
Pandera, plus the ``prepare_*`` functions that normalize raw repository
frames into those shapes before validation.
"""

from typing import List, Optional, Sequence
import logging

import pandas as pd
import pandera as pa
from pandera.typing import DataFrame, Series

from league_rankings.config import SEASON_TYPES
from league_rankings.errors import SchemaValidationError
from league_rankings.schema.coercion import (
    coerce_dates, coerce_flags, coerce_ids, coerce_numeric_columns, ensure_columns
)

logger = logging.getLogger(__name__)

MATCHUP_FLAG_COLUMNS = ["home_win", "away_win", "tie", "is_complete"]


class TeamSchema(pa.DataFrameModel):
    """Pandera schema for season teams."""

    id: Series[str] = pa.Field(description="Team id", unique=True)
    season_id: Series[str] = pa.Field(description="Season id")
    conference_id: Optional[Series[str]] = pa.Field(
        description="Conference id, absent for independents",
        nullable=True
    )

    class Config:
        """Pandera configuration."""
        coerce = False  # prepare_teams normalizes dtypes
        strict = False


class WeekSchema(pa.DataFrameModel):
    """
    Pandera schema for season weeks.

    Week order is load-bearing: ratings are folded week by week in the
    order given by ``sort_order``, ``start_date`` and ``id``.
    """

    id: Series[str] = pa.Field(description="Week id", unique=True)
    season_id: Series[str] = pa.Field(description="Season id")
    week_type: Series[str] = pa.Field(
        description="Season segment: RS, PO or LT",
        isin=list(SEASON_TYPES)
    )
    start_date: Series[pd.Timestamp] = pa.Field(description="First day of the week", nullable=True)
    end_date: Series[pd.Timestamp] = pa.Field(description="Last day of the week", nullable=True)
    sort_order: Optional[Series[float]] = pa.Field(description="Chronological order key", nullable=True)
    is_complete: Optional[Series[pd.BooleanDtype]] = pa.Field(
        description="Explicit completion flag",
        nullable=True
    )

    class Config:
        """Pandera configuration."""
        coerce = False
        strict = False

    @pa.dataframe_check
    def end_not_before_start(cls, df: DataFrame) -> Series[bool]:
        """A week cannot end before it starts."""
        both = df["start_date"].notna() & df["end_date"].notna()
        return ~both | (df["end_date"] >= df["start_date"])


class MatchupSchema(pa.DataFrameModel):
    """Pandera schema for head-to-head matchups."""

    id: Series[str] = pa.Field(description="Matchup id", unique=True)
    season_id: Series[str] = pa.Field(description="Season id")
    week_id: Series[str] = pa.Field(description="Owning week id")
    home_team_id: Series[str] = pa.Field(description="Home team id")
    away_team_id: Series[str] = pa.Field(description="Away team id")
    home_score: Series[float] = pa.Field(description="Home category wins", nullable=True, ge=0)
    away_score: Series[float] = pa.Field(description="Away category wins", nullable=True, ge=0)
    home_win: Series[pd.BooleanDtype] = pa.Field(nullable=True)
    away_win: Series[pd.BooleanDtype] = pa.Field(nullable=True)
    tie: Series[pd.BooleanDtype] = pa.Field(nullable=True)
    is_complete: Series[pd.BooleanDtype] = pa.Field(nullable=True)
    playoff_round: Optional[Series[float]] = pa.Field(
        description="1-based playoff round marker",
        nullable=True,
        ge=1
    )

    class Config:
        """Pandera configuration."""
        coerce = False
        strict = False

    @pa.dataframe_check
    def distinct_sides(cls, df: DataFrame) -> Series[bool]:
        """A team cannot play itself."""
        return df["home_team_id"] != df["away_team_id"]


class TeamWeekStatLineSchema(pa.DataFrameModel):
    """
    Pandera schema for per team-week aggregate stat lines.

    Category columns depend on the configured category rules and are
    coerced by ``prepare_team_weeks``; only the key columns are fixed.
    """

    team_id: Series[str] = pa.Field(description="Team id")
    week_id: Series[str] = pa.Field(description="Week id")
    season_id: Series[str] = pa.Field(description="Season id")

    class Config:
        """Pandera configuration."""
        coerce = False
        strict = False

    @pa.dataframe_check
    def unique_team_week(cls, df: DataFrame) -> Series[bool]:
        """At most one stat line per (team, week)."""
        return ~df.duplicated(subset=["team_id", "week_id"], keep=False)


class PlayerWeekStatLineSchema(pa.DataFrameModel):
    """Pandera schema for the player week columns used for goalie starts."""

    team_id: Series[str] = pa.Field(description="Team id")
    week_id: Series[str] = pa.Field(description="Week id")
    pos_group: Series[str] = pa.Field(description="Position group (F, D, G)", nullable=True)
    GS: Series[float] = pa.Field(description="Games started", nullable=True, ge=0)

    class Config:
        """Pandera configuration."""
        coerce = False
        strict = False


def validate_frame(df: pd.DataFrame, schema, table: str) -> pd.DataFrame:
    """
    Validate a DataFrame against a league schema.

    Args:
        df: pandas DataFrame to validate
        schema: Pandera schema class
        table: Table name used in errors

    Returns:
        Validated DataFrame

    Raises:
        SchemaValidationError: If validation fails
    """
    try:
        return schema.validate(df, lazy=True)
    except (pa.errors.SchemaError, pa.errors.SchemaErrors) as e:
        logger.error(f"Schema validation failed for {table}")
        logger.debug(f"DataFrame shape: {df.shape}")
        logger.debug(f"DataFrame columns: {list(df.columns)}")
        if hasattr(e, 'failure_cases') and e.failure_cases is not None:
            logger.debug(f"Failure cases:\n{e.failure_cases}")
        raise SchemaValidationError(table, str(e)) from e


def prepare_teams(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize and validate the teams table."""
    df = ensure_columns(df, ["id", "season_id", "conference_id"])
    for col in ["id", "season_id", "conference_id"]:
        df[col] = coerce_ids(df[col])
    return validate_frame(df, TeamSchema, "teams")


def prepare_weeks(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize and validate the weeks table."""
    df = ensure_columns(df, ["id", "season_id", "week_type", "start_date", "end_date",
                             "sort_order", "is_complete"])
    df["id"] = coerce_ids(df["id"])
    df["season_id"] = coerce_ids(df["season_id"])
    # Missing week type defaults to the regular season
    df["week_type"] = coerce_ids(df["week_type"]).map(lambda v: (v or "RS").upper())
    df["start_date"] = coerce_dates(df["start_date"])
    df["end_date"] = coerce_dates(df["end_date"])
    df = coerce_numeric_columns(df, ["sort_order"], "weeks")
    df["is_complete"] = coerce_flags(df["is_complete"])
    return validate_frame(df, WeekSchema, "weeks")


def prepare_matchups(df: pd.DataFrame, warnings: Optional[List[str]] = None) -> pd.DataFrame:
    """Normalize and validate the matchups table."""
    id_cols = ["id", "season_id", "week_id", "home_team_id", "away_team_id"]
    df = ensure_columns(df, id_cols + MATCHUP_FLAG_COLUMNS)
    for col in id_cols:
        df[col] = coerce_ids(df[col])
    df = coerce_numeric_columns(
        df, ["home_score", "away_score", "playoff_round", "home_rank", "away_rank"],
        "matchups", warnings
    )
    for col in MATCHUP_FLAG_COLUMNS:
        df[col] = coerce_flags(df[col])
    return validate_frame(df, MatchupSchema, "matchups")


def prepare_team_weeks(df: pd.DataFrame, numeric_columns: Sequence[str],
                       warnings: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Normalize and validate team week stat lines.

    Args:
        df: Raw team week frame
        numeric_columns: Category, rating and talent columns to coerce to float
        warnings: Optional list collecting unparseable-value messages

    Returns:
        Validated DataFrame
    """
    df = ensure_columns(df, ["team_id", "week_id", "season_id"])
    for col in ["team_id", "week_id", "season_id"]:
        df[col] = coerce_ids(df[col])
    df = coerce_numeric_columns(df, list(numeric_columns), "team_week_stat_lines", warnings)
    return validate_frame(df, TeamWeekStatLineSchema, "team_week_stat_lines")


def prepare_player_weeks(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize and validate the player week columns used for goalie starts."""
    df = ensure_columns(df, ["team_id", "week_id", "season_id", "pos_group", "GS"])
    for col in ["team_id", "week_id", "season_id", "pos_group"]:
        df[col] = coerce_ids(df[col])
    df = coerce_numeric_columns(df, ["GS"], "player_week_stat_lines")
    return validate_frame(df, PlayerWeekStatLineSchema, "player_week_stat_lines")
