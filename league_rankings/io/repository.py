#!/usr/bin/env python3
"""
Stat repository

Narrow storage interface used by the ranking engine: fetch a season's rows
from a table, and upsert computed rows by natural key. Two stores are
provided, an in-memory one (tests, dry runs, notebooks) and a CSV
directory with one atomically written file per table.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

import numpy as np
import pandas as pd

from league_rankings.io.safe_write import safe_write_csv
from league_rankings.schema.coercion import normalize_id

logger = logging.getLogger(__name__)

TEAMS = "teams"
WEEKS = "weeks"
MATCHUPS = "matchups"
TEAM_WEEK_STAT_LINES = "team_week_stat_lines"
PLAYER_WEEK_STAT_LINES = "player_week_stat_lines"
TEAM_SEASON_STANDINGS = "team_season_standings"


@dataclass
class UpsertResult:
    table: str
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.unchanged

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _canonical(value: Any) -> Optional[str]:
    """Comparable form of a cell so CSV text and in-memory values compare equal."""
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, float, np.integer, np.floating)):
        return None if np.isnan(float(value)) else repr(float(value))
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    if not text:
        return None
    try:
        return repr(float(text))
    except ValueError:
        return text


def _key(row: Dict[str, Any], key_columns: Sequence[str]) -> Tuple:
    return tuple(normalize_id(row.get(col)) for col in key_columns)


def upsert_frame(existing: Optional[pd.DataFrame], rows: pd.DataFrame,
                 key_columns: Sequence[str], table: str = "") -> Tuple[pd.DataFrame, UpsertResult]:
    """
    Merge ``rows`` into ``existing`` by natural key.

    Only the columns present in ``rows`` are written; other columns of an
    existing row are kept. Unknown keys are appended. Rows of ``existing``
    not named in ``rows`` are left untouched.

    Args:
        existing: Current table contents (may be None or empty)
        rows: Rows to upsert
        key_columns: Natural key columns, present in ``rows``
        table: Table name for the result

    Returns:
        Tuple of (merged frame, UpsertResult with created / updated /
        unchanged counts)
    """
    missing = [col for col in key_columns if col not in rows.columns]
    if missing:
        raise KeyError(f"Upsert rows for {table or 'table'} lack key columns: {missing}")

    result = UpsertResult(table=table)
    if existing is None or existing.empty:
        merged = rows.astype(object).reset_index(drop=True)
        if existing is not None:
            for col in existing.columns:
                if col not in merged.columns:
                    merged[col] = None
        result.created = len(rows)
        return merged, result

    merged = existing.astype(object).reset_index(drop=True)
    for col in rows.columns:
        if col not in merged.columns:
            merged[col] = None

    position = {_key(row, key_columns): i for i, row in enumerate(merged.to_dict('records'))}
    value_columns = [col for col in rows.columns if col not in key_columns]
    appended: List[Dict[str, Any]] = []
    appended_at: Dict[Tuple, int] = {}

    for row in rows.to_dict('records'):
        key = _key(row, key_columns)
        if key in appended_at:
            # Duplicate key within ``rows``: last one wins
            appended[appended_at[key]].update(row)
            continue
        if key not in position:
            appended_at[key] = len(appended)
            appended.append(row)
            result.created += 1
            continue

        i = position[key]

        changed = False
        for col in value_columns:
            if _canonical(merged.at[i, col]) != _canonical(row[col]):
                merged.at[i, col] = row[col]
                changed = True
        if changed:
            result.updated += 1
        else:
            result.unchanged += 1

    if appended:
        merged = pd.concat([merged, pd.DataFrame(appended).astype(object)], ignore_index=True)

    return merged, result


class StatRepository(ABC):
    """Tabular store keyed by table name."""

    @abstractmethod
    def read_table(self, table: str) -> pd.DataFrame:
        """Return the full table, or an empty frame when it does not exist."""

    @abstractmethod
    def write_table(self, table: str, df: pd.DataFrame) -> None:
        """Replace the full table."""

    def fetch(self, table: str, season_id: str) -> pd.DataFrame:
        """Rows of ``table`` belonging to ``season_id``."""
        df = self.read_table(table)
        if df.empty or 'season_id' not in df.columns:
            return df.iloc[0:0].copy()
        mask = df['season_id'].map(normalize_id) == normalize_id(season_id)
        return df[mask].reset_index(drop=True)

    def fetch_teams(self, season_id: str) -> pd.DataFrame:
        return self.fetch(TEAMS, season_id)

    def fetch_weeks(self, season_id: str) -> pd.DataFrame:
        return self.fetch(WEEKS, season_id)

    def fetch_matchups(self, season_id: str) -> pd.DataFrame:
        return self.fetch(MATCHUPS, season_id)

    def fetch_team_weeks(self, season_id: str) -> pd.DataFrame:
        return self.fetch(TEAM_WEEK_STAT_LINES, season_id)

    def fetch_player_weeks(self, season_id: str) -> pd.DataFrame:
        return self.fetch(PLAYER_WEEK_STAT_LINES, season_id)

    def fetch_team_seasons(self, season_id: str) -> pd.DataFrame:
        return self.fetch(TEAM_SEASON_STANDINGS, season_id)

    def upsert(self, table: str, key_columns: Sequence[str], rows: pd.DataFrame) -> UpsertResult:
        """
        Upsert rows by natural key.

        Args:
            table: Target table
            key_columns: Natural key columns
            rows: Rows to write

        Returns:
            UpsertResult with created / updated / unchanged counts
        """
        merged, result = upsert_frame(self.read_table(table), rows, key_columns, table)
        if result.created or result.updated:
            self.write_table(table, merged)
        logger.info(f"{table}: {result.created} created, {result.updated} updated, "
                    f"{result.unchanged} unchanged")
        return result


class InMemoryRepository(StatRepository):
    """Dict of DataFrames."""

    def __init__(self, tables: Optional[Dict[str, pd.DataFrame]] = None):
        self.tables: Dict[str, pd.DataFrame] = {
            name: df.copy() for name, df in (tables or {}).items()
        }

    def read_table(self, table: str) -> pd.DataFrame:
        df = self.tables.get(table)
        return pd.DataFrame() if df is None else df.copy()

    def write_table(self, table: str, df: pd.DataFrame) -> None:
        self.tables[table] = df.copy()


class CsvRepository(StatRepository):
    """One CSV file per table under ``data_dir``, read back as text."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def path_for(self, table: str) -> Path:
        return self.data_dir / f"{table}.csv"

    def read_table(self, table: str) -> pd.DataFrame:
        path = self.path_for(table)
        if not path.exists():
            logger.debug(f"No file for table {table}: {path}")
            return pd.DataFrame()
        return pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])

    def write_table(self, table: str, df: pd.DataFrame) -> None:
        safe_write_csv(df, self.path_for(table), logger)
