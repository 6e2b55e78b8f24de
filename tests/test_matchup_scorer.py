#!/usr/bin/env python3
"""
Test suite for category scoring of head-to-head matchups
"""

import pytest
import pandas as pd
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from league_rankings.analytics.matchup_scorer import (
    MatchupScorer, WeekStatus, build_goalie_starts, build_week_status, score_categories
)
from league_rankings.config import DEFAULT_CATEGORY_RULES

SKATER_FIELDS = ['G', 'A', 'P', 'PPP', 'SOG', 'HIT', 'BLK']


def line(skater=1.0, wins=1.0, gaa=3.0, svp=0.900):
    row = {field: skater for field in SKATER_FIELDS}
    row.update({'W': wins, 'GAA': gaa, 'SVP': svp})
    return row


COMPLETE = WeekStatus('w1', 'RS', is_complete=True, is_active=False)
ACTIVE = WeekStatus('w1', 'RS', is_complete=False, is_active=True)


class TestScoreCategories:
    """Test cases for per-category scoring"""

    def test_skaters_to_home_goalies_to_away(self):
        """Home sweeps skater categories, away sweeps goalie categories"""
        home = line(skater=5.0, wins=1.0, gaa=3.5, svp=0.880)
        away = line(skater=2.0, wins=3.0, gaa=2.0, svp=0.920)

        assert score_categories(home, away, 2, 2) == (7, 3)

    def test_lower_is_better_category(self):
        """GAA goes to the lower value"""
        home = line(gaa=2.0)
        away = line(gaa=3.0)

        assert score_categories(home, away, 2, 2) == (1, 0)

    def test_identical_lines_award_nothing(self):
        """Tied categories are not awarded"""
        assert score_categories(line(), line(), 2, 2) == (0, 0)

    def test_goalie_minimum_awards_goalie_categories(self):
        """Only the side meeting the start minimum takes the goalie categories"""
        # Away has better goalie numbers but only one start
        home = line(wins=0.0, gaa=5.0, svp=0.850)
        away = line(wins=1.0, gaa=1.0, svp=0.950)

        assert score_categories(home, away, 2, 1) == (3, 0)
        assert score_categories(home, away, 0, 3) == (0, 3)

    def test_goalie_categories_compared_when_neither_qualifies(self):
        """With neither side at the minimum the raw values decide"""
        home = line(wins=0.0, gaa=5.0, svp=0.850)
        away = line(wins=1.0, gaa=1.0, svp=0.950)

        assert score_categories(home, away, 1, 0) == (0, 3)

    def test_blank_values_count_as_zero(self):
        """A blank stat loses to any positive value"""
        home = line()
        home['G'] = None
        away = line()

        assert score_categories(home, away, 2, 2) == (0, 1)

    def test_category_total_never_exceeds_rule_count(self):
        """Home plus away never exceeds the number of categories"""
        home = line(skater=3.0, wins=2.0, gaa=2.0, svp=0.910)
        away = line(skater=1.0, wins=2.0, gaa=2.5, svp=0.910)

        home_score, away_score = score_categories(home, away, 2, 2)
        assert home_score + away_score <= len(DEFAULT_CATEGORY_RULES)


class TestMatchupScorer:
    """Test cases for refreshing matchup rows"""

    def test_complete_week_sets_outcome(self):
        """A complete week writes scores and outcome flags"""
        scorer = MatchupScorer()
        matchup = {'id': 'm1', 'home_team_id': '1', 'away_team_id': '2', 'week_id': 'w1'}

        updated = scorer.score_matchup(matchup, line(skater=5.0), line(skater=2.0), 2, 2, COMPLETE)

        assert updated['home_score'] == 7.0
        assert updated['away_score'] == 0.0
        assert updated['home_win'] is True
        assert updated['away_win'] is False
        assert updated['tie'] is False
        assert updated['is_complete'] is True

    def test_level_scores_go_to_home(self):
        """Level category scores still resolve in favour of the home side"""
        scorer = MatchupScorer()
        matchup = {'id': 'm1', 'home_team_id': '1', 'away_team_id': '2', 'week_id': 'w1'}

        updated = scorer.score_matchup(matchup, line(), line(), 2, 2, COMPLETE)

        assert updated['home_score'] == updated['away_score'] == 0.0
        assert updated['home_win'] is True
        assert updated['away_win'] is False

    def test_active_week_keeps_flags(self):
        """An active week refreshes scores but leaves outcome flags alone"""
        scorer = MatchupScorer()
        matchup = {'id': 'm1', 'home_team_id': '1', 'away_team_id': '2', 'week_id': 'w1',
                   'home_win': None, 'away_win': None, 'tie': None, 'is_complete': None}

        updated = scorer.score_matchup(matchup, line(skater=5.0), line(skater=2.0), 2, 2, ACTIVE)

        assert updated['home_score'] == 7.0
        assert updated['home_win'] is None
        assert updated['is_complete'] is None

    def test_score_season_skips_missing_lines(self):
        """Matchups without both stat lines are skipped with a warning"""
        scorer = MatchupScorer()
        matchups = pd.DataFrame({
            'id': ['m1', 'm2'],
            'week_id': ['w1', 'w1'],
            'home_team_id': ['1', '3'],
            'away_team_id': ['2', '4'],
            'home_score': [None, None],
            'away_score': [None, None],
            'home_win': [None, None],
            'away_win': [None, None],
            'tie': [None, None],
            'is_complete': [None, None],
        })
        team_weeks = pd.DataFrame([
            dict(line(skater=5.0), team_id='1', week_id='w1'),
            dict(line(skater=2.0), team_id='2', week_id='w1'),
            dict(line(skater=2.0), team_id='3', week_id='w1'),
        ])
        player_weeks = pd.DataFrame(columns=['team_id', 'week_id', 'pos_group', 'GS'])

        scored, scored_ids, warnings = scorer.score_season(
            matchups, {'w1': COMPLETE}, team_weeks, player_weeks
        )

        assert scored_ids == ['m1']
        assert len(warnings) == 1
        assert 'm2' in warnings[0]
        assert scored.loc[scored['id'] == 'm1', 'home_win'].iloc[0] == True  # noqa: E712
        assert pd.isna(scored.loc[scored['id'] == 'm2', 'home_score'].iloc[0])


class TestWeekStatus:
    """Test cases for week classification"""

    def test_classification_by_date(self):
        """Weeks are complete, active or pending relative to today"""
        weeks = pd.DataFrame({
            'id': ['w1', 'w2', 'w3'],
            'week_type': ['RS', 'RS', 'PO'],
            'start_date': ['2025-10-06', '2025-10-13', '2025-10-20'],
            'end_date': ['2025-10-12', '2025-10-19', '2025-10-26'],
            'is_complete': [None, None, None],
        })

        status = build_week_status(weeks, date(2025, 10, 15))

        assert status['w1'].is_complete and not status['w1'].is_active
        assert status['w2'].is_active and not status['w2'].is_complete
        assert not status['w3'].is_active and not status['w3'].is_complete
        assert status['w3'].week_type == 'PO'

    def test_explicit_flag_marks_complete(self):
        """An explicit completion flag wins over dates"""
        weeks = pd.DataFrame({
            'id': ['w1'],
            'week_type': ['RS'],
            'start_date': ['2025-10-06'],
            'end_date': ['2025-10-12'],
            'is_complete': [True],
        })

        status = build_week_status(weeks, date(2025, 10, 1))

        assert status['w1'].is_complete


class TestGoalieStarts:
    """Test cases for goalie start aggregation"""

    def test_sums_goalies_only(self):
        """Only goalie rows count toward starts"""
        player_weeks = pd.DataFrame({
            'team_id': ['1', '1', '1', '2'],
            'week_id': ['w1', 'w1', 'w1', 'w1'],
            'pos_group': ['G', 'G', 'F', 'G'],
            'GS': [1.0, 2.0, 5.0, None],
        })

        starts = build_goalie_starts(player_weeks)

        assert starts[('1', 'w1')] == 3.0
        assert starts[('2', 'w1')] == 0.0
