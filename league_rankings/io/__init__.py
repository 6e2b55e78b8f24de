"""
Storage layer: repository interface, in-memory and CSV stores, atomic writes.
"""

from .repository import (
    StatRepository, InMemoryRepository, CsvRepository, UpsertResult, upsert_frame,
    TEAMS, WEEKS, MATCHUPS, TEAM_WEEK_STAT_LINES, PLAYER_WEEK_STAT_LINES, TEAM_SEASON_STANDINGS
)
from .safe_write import safe_write_csv, safe_write_json

__all__ = [
    'StatRepository',
    'InMemoryRepository',
    'CsvRepository',
    'UpsertResult',
    'upsert_frame',
    'safe_write_csv',
    'safe_write_json',
    'TEAMS',
    'WEEKS',
    'MATCHUPS',
    'TEAM_WEEK_STAT_LINES',
    'PLAYER_WEEK_STAT_LINES',
    'TEAM_SEASON_STANDINGS'
]
