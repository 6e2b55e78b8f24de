#!/usr/bin/env python3
"""
Test suite for the weekly performance score
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from league_rankings.analytics.performance import (
    PerformanceScoreEngine, category_zscores, matchup_metrics
)
from league_rankings.config import CategoryRule, RankingConfig

RULES = [CategoryRule('G'), CategoryRule('GAA', higher_better=False)]


@pytest.fixture
def small_config():
    return RankingConfig(category_rules=list(RULES))


def two_team_week():
    lines = {
        '1': {'G': 5.0, 'GAA': 2.0, 'Rating': 80.0},
        '2': {'G': 1.0, 'GAA': 4.0, 'Rating': 40.0},
    }
    matchups = [{
        'id': 'm1', 'home_team_id': '1', 'away_team_id': '2',
        'home_score': 2.0, 'away_score': 0.0,
        'home_win': True, 'away_win': False, 'tie': False,
    }]
    return lines, matchups


class TestCategoryZscores:
    """Test cases for directional category z-scores"""

    def test_direction_applied(self):
        """Lower-is-better categories are negated before averaging"""
        lines, _ = two_team_week()
        z = category_zscores(['1', '2'], lines, RULES)

        assert z['1'] == pytest.approx(1.0)
        assert z['2'] == pytest.approx(-1.0)

    def test_blank_values_excluded(self):
        """A team with no category data scores 0"""
        lines = {'1': {'G': 3.0}, '2': {'G': 1.0}, '3': {}}
        z = category_zscores(['1', '2', '3'], lines, [CategoryRule('G')])

        assert z['1'] == pytest.approx(1.0)
        assert z['3'] == 0.0


class TestMatchupMetrics:
    """Test cases for per-week matchup signals"""

    def test_points_and_margin(self):
        _, matchups = two_team_week()
        metrics = matchup_metrics(matchups)

        assert metrics['points'] == {'1': 3.0, '2': 0.0}
        assert metrics['margin'] == {'1': 2.0, '2': -2.0}


class TestPerformanceScoreEngine:
    """Test cases for raw scores and EWMA smoothing"""

    def test_dominant_team_raw_score(self, small_config):
        """A team better in every signal scores the sum of the weights"""
        engine = PerformanceScoreEngine(small_config)
        engine.reset(['1', '2'])
        lines, matchups = two_team_week()

        records = engine.score_week('w1', ['1', '2'], lines, matchups)

        assert records['1'].raw == pytest.approx(1.0)
        assert records['2'].raw == pytest.approx(-1.0)
        assert records['1'].ewma == pytest.approx(0.35)

    def test_ewma_carries_across_weeks(self, small_config):
        """Each week blends the new raw score into the previous EWMA"""
        engine = PerformanceScoreEngine(small_config)
        engine.reset(['1', '2'])
        lines, matchups = two_team_week()

        engine.score_week('w1', ['1', '2'], lines, matchups)
        records = engine.score_week('w2', ['1', '2'], lines, matchups)

        assert records['1'].ewma == pytest.approx(0.35 * 1.0 + 0.65 * 0.35)

    def test_idle_team_keeps_ewma(self, small_config):
        """A team with no line and no matchup keeps its EWMA and has no raw score"""
        engine = PerformanceScoreEngine(small_config)
        engine.reset(['1', '2', '3'])
        engine.ewma['3'] = 0.4
        lines, matchups = two_team_week()

        records = engine.score_week('w1', ['1', '2', '3'], lines, matchups)

        assert records['3'].raw is None
        assert records['3'].ewma == 0.4

    def test_talent_weight_scales_other_weights(self):
        """A talent weight takes its share from the four base weights"""
        config = RankingConfig(perf_talent_weight=0.2, talent_field='Talent')
        weights = PerformanceScoreEngine(config).weights()

        assert weights['category'] == pytest.approx(0.45 * 0.8)
        assert weights['rating'] == pytest.approx(0.35 * 0.8)
        assert weights['talent'] == pytest.approx(0.2)
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_talent_weight_ignored_without_field(self, small_config):
        weights = PerformanceScoreEngine(small_config).weights()

        assert weights['talent'] == 0.0
        assert weights['category'] == pytest.approx(0.45)
