"""
Analytics module for the league power rankings and standings engine.

This module provides matchup scoring, Elo ratings, the weekly performance
score, composite power rankings, standings and the season run pipeline.
"""

from .matchup_scorer import MatchupScorer, build_week_status, score_categories
from .elo import EloRatingEngine, expected_score
from .performance import PerformanceScoreEngine
from .composite import CompositeRankingEngine, PowerWeekSnapshot
from .standings import StandingsEngine, team_points
from .ranking_engine import RankingEngine, RunResult, run_power_rankings

__all__ = [
    'MatchupScorer',
    'build_week_status',
    'score_categories',
    'EloRatingEngine',
    'expected_score',
    'PerformanceScoreEngine',
    'CompositeRankingEngine',
    'PowerWeekSnapshot',
    'StandingsEngine',
    'team_points',
    'RankingEngine',
    'RunResult',
    'run_power_rankings'
]
