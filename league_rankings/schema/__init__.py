"""
Pandera schemas and normalizers for the league tables.
"""

from .league_schema import (
    TeamSchema, WeekSchema, MatchupSchema, TeamWeekStatLineSchema, PlayerWeekStatLineSchema,
    prepare_teams, prepare_weeks, prepare_matchups, prepare_team_weeks, prepare_player_weeks,
    validate_frame
)

__all__ = [
    'TeamSchema',
    'WeekSchema',
    'MatchupSchema',
    'TeamWeekStatLineSchema',
    'PlayerWeekStatLineSchema',
    'prepare_teams',
    'prepare_weeks',
    'prepare_matchups',
    'prepare_team_weeks',
    'prepare_player_weeks',
    'validate_frame'
]
