#!/usr/bin/env python3
"""
Statistical utilities for the power rankings pipeline.

Provides helper functions for z-score normalization, scaling, smoothing and
deterministic ordering used by the Elo, performance and composite engines.
"""

import re
from typing import Any, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
import logging

logger = logging.getLogger(__name__)

_NATURAL_SPLIT = re.compile(r'(\d+)')


def parse_number(value: Any) -> float:
    """
    Parse a loosely typed cell into a float.

    Args:
        value: Number, numeric string, blank or None

    Returns:
        Parsed float, or NaN when blank or unparseable
    """
    if value is None:
        return np.nan
    if isinstance(value, (bool, int, float, np.bool_, np.integer, np.floating)):
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(',', '')
        if not text:
            return np.nan
        try:
            return float(text)
        except ValueError:
            return np.nan
    try:
        if pd.isna(value):
            return np.nan
    except (TypeError, ValueError):
        return np.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def to_number(value: Any, default: float = 0.0) -> float:
    """Parse a cell into a float, substituting ``default`` for blank or unparseable values."""
    parsed = parse_number(value)
    return default if np.isnan(parsed) else parsed


def clamp01(x: float) -> float:
    """Clamp a value into [0, 1]."""
    return float(min(1.0, max(0.0, x)))


def population_zscores(values: Union[pd.Series, Mapping[str, Optional[float]]]) -> pd.Series:
    """
    Compute population z-scores over the non-null values of a series.

    Args:
        values: Series or mapping keyed by team id; nulls are excluded
            from the population and from the result

    Returns:
        Series of z-scores for the non-null entries. A zero or undefined
        standard deviation falls back to 1.
    """
    series = pd.Series(values, dtype=float) if not isinstance(values, pd.Series) else values.astype(float)
    valid = series.dropna()
    if valid.empty:
        return valid

    mean = valid.mean()
    std = valid.std(ddof=0)
    if not std or not np.isfinite(std):
        std = 1.0

    return (valid - mean) / std


def minmax_0_100(values: pd.Series) -> pd.Series:
    """
    Min-max scale a series onto 0-100.

    Args:
        values: Input series

    Returns:
        Scaled series; every entry is 50 when all values are equal
    """
    if values.empty:
        return values.astype(float)

    lo = values.min()
    hi = values.max()
    if not np.isfinite(hi - lo) or hi == lo:
        return pd.Series(50.0, index=values.index)

    return (values - lo) / (hi - lo) * 100.0


def ewma_update(raw: float, previous: float, alpha: float) -> float:
    """Single step of an exponentially weighted moving average."""
    return alpha * raw + (1 - alpha) * previous


def natural_key(value: Any) -> Tuple:
    """
    Sort key that orders ids numerically where they are numeric.

    "2" sorts before "10"; mixed ids such as "T2" and "T10" follow the same
    rule per numeric run.
    """
    text = '' if value is None else str(value)
    parts: List[Any] = []
    for i, chunk in enumerate(_NATURAL_SPLIT.split(text)):
        # split() alternates text, digits, text, ...
        parts.append(int(chunk) if i % 2 else chunk.lower())
    return tuple(parts)


if __name__ == "__main__":
    print("Testing statistical utilities...")

    z = population_zscores(pd.Series({'1': 10.0, '2': 20.0, '3': None}))
    print(f"population_zscores: {z.to_dict()}")

    scaled = minmax_0_100(pd.Series([1.0, 2.0, 3.0]))
    print(f"minmax_0_100: {scaled.tolist()}")

    ids = sorted(['10', '2', '1'], key=natural_key)
    print(f"natural_key: {ids}")

    print("All tests passed!")
