#!/usr/bin/env python3
"""
Test suite for league table schemas and column coercion
"""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from league_rankings.errors import SchemaValidationError
from league_rankings.schema import (
    prepare_matchups, prepare_player_weeks, prepare_team_weeks, prepare_teams, prepare_weeks
)
from league_rankings.schema.coercion import coerce_numbers, normalize_id, to_flag


class TestCoercion:
    """Test cases for loosely typed cells"""

    def test_normalize_id(self):
        assert normalize_id(3.0) == '3'
        assert normalize_id(' 42 ') == '42'
        assert normalize_id('') is None
        assert normalize_id(np.nan) is None
        assert normalize_id('T10') == 'T10'

    def test_to_flag(self):
        assert to_flag('true') is True
        assert to_flag('0') is False
        assert to_flag(1.0) is True
        assert to_flag('') is None
        assert to_flag(None) is None

    def test_coerce_numbers_counts_unparseable(self):
        values, bad = coerce_numbers(pd.Series(['1,200', '', 'abc', 3, None]))

        assert values.iloc[0] == 1200.0
        assert np.isnan(values.iloc[1])
        assert np.isnan(values.iloc[2])
        assert values.iloc[3] == 3.0
        assert bad == 1


class TestTeamAndWeekSchemas:
    """Test cases for teams and weeks"""

    def test_valid_teams(self):
        teams = prepare_teams(pd.DataFrame({
            'id': [1.0, 2.0],
            'season_id': ['2025', '2025'],
        }))

        assert list(teams['id']) == ['1', '2']
        assert teams['conference_id'].isna().all()

    def test_duplicate_team_ids_fail(self):
        with pytest.raises(SchemaValidationError):
            prepare_teams(pd.DataFrame({'id': ['1', '1'], 'season_id': ['2025', '2025']}))

    def test_week_type_normalized(self):
        weeks = prepare_weeks(pd.DataFrame({
            'id': ['w1', 'w2'],
            'season_id': ['2025', '2025'],
            'week_type': ['po', None],
            'start_date': ['2025-10-06', '2025-10-13'],
            'end_date': ['2025-10-12', '2025-10-19'],
        }))

        assert list(weeks['week_type']) == ['PO', 'RS']
        assert weeks['sort_order'].isna().all()

    def test_unknown_week_type_fails(self):
        with pytest.raises(SchemaValidationError) as excinfo:
            prepare_weeks(pd.DataFrame({
                'id': ['w1'], 'season_id': ['2025'], 'week_type': ['XX'],
                'start_date': ['2025-10-06'], 'end_date': ['2025-10-12'],
            }))

        assert excinfo.value.table == 'weeks'

    def test_week_ending_before_start_fails(self):
        with pytest.raises(SchemaValidationError):
            prepare_weeks(pd.DataFrame({
                'id': ['w1'], 'season_id': ['2025'], 'week_type': ['RS'],
                'start_date': ['2025-10-12'], 'end_date': ['2025-10-06'],
            }))


class TestMatchupSchema:
    """Test cases for matchups"""

    def base_matchups(self):
        return pd.DataFrame({
            'id': ['m1'],
            'season_id': ['2025'],
            'week_id': ['w1'],
            'home_team_id': ['1'],
            'away_team_id': ['2'],
            'home_score': ['6'],
            'away_score': [''],
            'home_win': ['true'],
        })

    def test_valid_matchup(self):
        matchups = prepare_matchups(self.base_matchups())

        assert matchups['home_score'].iloc[0] == 6.0
        assert pd.isna(matchups['away_score'].iloc[0])
        assert matchups['home_win'].iloc[0] == True  # noqa: E712
        assert pd.isna(matchups['tie'].iloc[0])

    def test_team_cannot_play_itself(self):
        df = self.base_matchups()
        df['away_team_id'] = ['1']

        with pytest.raises(SchemaValidationError):
            prepare_matchups(df)

    def test_unparseable_score_warns(self):
        df = self.base_matchups()
        df['home_score'] = ['six']
        warnings = []

        matchups = prepare_matchups(df, warnings)

        assert pd.isna(matchups['home_score'].iloc[0])
        assert len(warnings) == 1
        assert 'home_score' in warnings[0]


class TestStatLineSchemas:
    """Test cases for team and player week stat lines"""

    def test_duplicate_team_week_fails(self):
        df = pd.DataFrame({
            'team_id': ['1', '1'],
            'week_id': ['w1', 'w1'],
            'season_id': ['2025', '2025'],
            'G': [1, 2],
        })

        with pytest.raises(SchemaValidationError):
            prepare_team_weeks(df, ['G'])

    def test_missing_category_column_added(self):
        df = pd.DataFrame({'team_id': ['1'], 'week_id': ['w1'], 'season_id': ['2025']})

        lines = prepare_team_weeks(df, ['G', 'Rating'])

        assert lines['G'].isna().all()
        assert lines['Rating'].dtype == float

    def test_player_weeks(self):
        players = prepare_player_weeks(pd.DataFrame({
            'team_id': ['1'], 'week_id': ['w1'], 'season_id': ['2025'],
            'pos_group': ['G'], 'GS': ['2'],
        }))

        assert players['GS'].iloc[0] == 2.0
