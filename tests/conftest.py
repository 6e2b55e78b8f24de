#!/usr/bin/env python3
"""
Pytest configuration and fixtures
"""

import pytest
import pandas as pd
import tempfile
import shutil
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from league_rankings.config import RankingConfig
from league_rankings.io.repository import (
    InMemoryRepository, TEAMS, WEEKS, MATCHUPS, TEAM_WEEK_STAT_LINES, PLAYER_WEEK_STAT_LINES
)

SEASON_ID = "2025"
RUN_DATE = date(2025, 10, 25)

# Team strength levels: every category is strictly ordered by level
TEAM_LEVELS = {'1': 4, '2': 3, '3': 2, '4': 1}


def stat_line(team_id, week_id, level):
    """Stat line whose every category improves with ``level``."""
    return {
        'team_id': team_id,
        'week_id': week_id,
        'season_id': SEASON_ID,
        'G': float(level),
        'A': float(level),
        'P': float(level),
        'PPP': float(level),
        'SOG': float(level * 10),
        'HIT': float(level * 5),
        'BLK': float(level * 3),
        'W': float(level),
        'GAA': float(5 - level),
        'SVP': 0.880 + level / 100,
        'Rating': float(level * 25),
    }


@pytest.fixture
def run_date():
    """Date the league fixture is ranked on"""
    return RUN_DATE


@pytest.fixture
def ranking_config():
    """Default configuration pinned to the fixture run date"""
    return RankingConfig(today=RUN_DATE)


@pytest.fixture
def league_tables():
    """
    Two-conference, four-team league.

    Weeks 1 and 2 are complete on the run date, week 3 is in the future.
    Teams 1 and 2 play in conference A, teams 3 and 4 in conference B.
    """
    teams = pd.DataFrame({
        'id': ['1', '2', '3', '4'],
        'season_id': [SEASON_ID] * 4,
        'name': ['Aces', 'Blades', 'Comets', 'Drifters'],
        'conference_id': ['A', 'A', 'B', 'B'],
    })
    weeks = pd.DataFrame({
        'id': ['w1', 'w2', 'w3'],
        'season_id': [SEASON_ID] * 3,
        'week_type': ['RS', 'RS', 'RS'],
        'start_date': ['2025-10-06', '2025-10-13', '2025-11-03'],
        'end_date': ['2025-10-12', '2025-10-19', '2025-11-09'],
        'sort_order': [1, 2, 3],
    })
    matchups = pd.DataFrame({
        'id': ['m1', 'm2', 'm3', 'm4', 'm5', 'm6'],
        'season_id': [SEASON_ID] * 6,
        'week_id': ['w1', 'w1', 'w2', 'w2', 'w3', 'w3'],
        'home_team_id': ['1', '3', '1', '2', '1', '2'],
        'away_team_id': ['2', '4', '3', '4', '4', '3'],
        'home_score': [None] * 6,
        'away_score': [None] * 6,
        'home_win': [None] * 6,
        'away_win': [None] * 6,
        'tie': [None] * 6,
        'is_complete': [None] * 6,
    })
    team_weeks = pd.DataFrame([
        stat_line(team_id, week_id, level)
        for week_id in ['w1', 'w2']
        for team_id, level in TEAM_LEVELS.items()
    ])
    player_weeks = pd.DataFrame([
        {'team_id': team_id, 'week_id': week_id, 'season_id': SEASON_ID,
         'player_id': f"g{team_id}", 'pos_group': 'G', 'GS': 2.0}
        for week_id in ['w1', 'w2']
        for team_id in TEAM_LEVELS
    ])

    return {
        TEAMS: teams,
        WEEKS: weeks,
        MATCHUPS: matchups,
        TEAM_WEEK_STAT_LINES: team_weeks,
        PLAYER_WEEK_STAT_LINES: player_weeks,
    }


@pytest.fixture
def league_repository(league_tables):
    """In-memory repository loaded with the league fixture"""
    return InMemoryRepository(league_tables)


@pytest.fixture
def temp_data_dir():
    """Temporary directory for test data"""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)
