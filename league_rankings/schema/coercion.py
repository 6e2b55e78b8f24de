#!/usr/bin/env python3
"""
Column coercion helpers shared by the league schemas.

Stat tables arrive loosely typed (CSV strings, spreadsheet numbers, blanks),
so every table is normalized here before pandera validation.
"""

from typing import Any, Iterable, List, Optional, Tuple
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "t", "yes", "y", "1", "1.0"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0", "0.0"}


def normalize_id(value: Any) -> Optional[str]:
    """
    Normalize an id cell to a string.

    Integral floats lose their ".0" so ids read from spreadsheets match
    ids read from CSV text.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def to_flag(value: Any) -> Optional[bool]:
    """
    Parse a loosely typed boolean cell.

    Returns:
        True, False, or None for blank / unrecognized values
    """
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        return bool(value)
    return None


def coerce_ids(series: pd.Series) -> pd.Series:
    """Map an id column onto nullable strings (object dtype)."""
    return series.map(normalize_id).astype(object)


def coerce_numbers(series: pd.Series) -> Tuple[pd.Series, int]:
    """
    Coerce a column to float.

    Args:
        series: Raw column

    Returns:
        Tuple of (float series with NaN for blanks, count of non-blank
        values that could not be parsed)
    """
    raw = series.map(lambda v: v.strip().replace(',', '') if isinstance(v, str) else v)
    raw = raw.map(lambda v: None if isinstance(v, str) and not v else v)
    numeric = pd.to_numeric(raw.map(_bool_to_number), errors='coerce').astype(float)
    unparseable = int((numeric.isna() & raw.notna()).sum())
    return numeric, unparseable


def _bool_to_number(value: Any) -> Any:
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    return value


def coerce_flags(series: pd.Series) -> pd.Series:
    """Coerce a column to the nullable pandas ``boolean`` dtype."""
    return pd.Series(series.map(to_flag).tolist(), index=series.index, dtype="boolean")


def coerce_dates(series: pd.Series) -> pd.Series:
    """Coerce a column to datetime64, unparseable values become NaT."""
    return pd.to_datetime(series, errors='coerce').astype("datetime64[ns]")


def ensure_columns(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """Add any missing columns, filled with None."""
    df = df.copy()
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df


def coerce_numeric_columns(df: pd.DataFrame, columns: Iterable[str], table: str,
                           warnings: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Coerce several numeric columns on a copy, logging unparseable values.

    Args:
        df: Input frame
        columns: Columns to coerce (missing columns are added as NaN)
        table: Table name used in log messages
        warnings: Optional list collecting one message per affected column

    Returns:
        Copy of ``df`` with float columns
    """
    df = ensure_columns(df, columns)
    for col in columns:
        df[col], bad = coerce_numbers(df[col])
        if bad:
            message = f"{table}.{col}: {bad} unparseable value(s) treated as blank"
            logger.warning(message)
            if warnings is not None:
                warnings.append(message)
    return df
