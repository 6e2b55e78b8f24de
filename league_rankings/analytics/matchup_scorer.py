#!/usr/bin/env python3
"""
Matchup Scorer

Scores head-to-head matchups category by category from the two teams'
weekly stat lines. Scores are refreshed for active and complete weeks;
win/loss flags are only written once the owning week is complete.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging

import pandas as pd

from league_rankings.analytics.utils_stats import to_number
from league_rankings.config import CategoryRule, DEFAULT_CATEGORY_RULES
from league_rankings.schema.coercion import to_flag

logger = logging.getLogger(__name__)

GOALIE_POS_GROUP = "G"


@dataclass(frozen=True)
class WeekStatus:
    week_id: str
    week_type: str
    is_complete: bool
    is_active: bool


def build_week_status(weeks: pd.DataFrame, today: date) -> Dict[str, WeekStatus]:
    """
    Classify every week as complete, active, or neither.

    A week is complete when flagged complete or when ``today`` is past its
    end date. An incomplete week is active while ``today`` falls inside
    its start and end dates.
    """
    today_ts = pd.Timestamp(today)
    statuses = {}
    for week in weeks.to_dict('records'):
        start = week.get('start_date')
        end = week.get('end_date')
        has_start = start is not None and not pd.isna(start)
        has_end = end is not None and not pd.isna(end)

        complete = to_flag(week.get('is_complete')) is True
        if not complete and has_end:
            complete = today_ts.normalize() > pd.Timestamp(end).normalize()

        active = False
        if not complete and has_start and has_end:
            active = pd.Timestamp(start).normalize() <= today_ts.normalize() <= pd.Timestamp(end).normalize()

        statuses[week['id']] = WeekStatus(
            week_id=week['id'],
            week_type=week.get('week_type') or "RS",
            is_complete=complete,
            is_active=active,
        )
    return statuses


def build_goalie_starts(player_weeks: pd.DataFrame) -> Dict[Tuple[str, str], float]:
    """Sum goalie games started per (team_id, week_id)."""
    if player_weeks.empty:
        return {}
    goalies = player_weeks[player_weeks['pos_group'] == GOALIE_POS_GROUP]
    goalies = goalies.dropna(subset=['team_id', 'week_id'])
    starts = goalies.groupby(['team_id', 'week_id'])['GS'].sum(min_count=1).fillna(0.0)
    return {key: float(value) for key, value in starts.items()}


def score_categories(home_line: Optional[Mapping], away_line: Optional[Mapping],
                     home_goalie_starts: float, away_goalie_starts: float,
                     rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
                     goalie_start_minimum: float = 2) -> Tuple[int, int]:
    """
    Count category wins for each side of a matchup.

    Args:
        home_line: Home team's weekly stat line
        away_line: Away team's weekly stat line
        home_goalie_starts: Goalie games started by the home team
        away_goalie_starts: Goalie games started by the away team
        rules: Category rules to score
        goalie_start_minimum: Starts needed to qualify for goalie categories

    Returns:
        Tuple of (home_score, away_score)
    """
    home_score = 0
    away_score = 0

    home_has_goalies = (home_goalie_starts or 0) >= goalie_start_minimum
    away_has_goalies = (away_goalie_starts or 0) >= goalie_start_minimum

    for rule in rules:
        # Goalie categories go to the only side that met the start minimum
        if rule.goalie_only and home_has_goalies != away_has_goalies:
            if home_has_goalies:
                home_score += 1
            else:
                away_score += 1
            continue

        home_val = to_number((home_line or {}).get(rule.field))
        away_val = to_number((away_line or {}).get(rule.field))
        if home_val == away_val:
            continue

        home_wins = home_val > away_val if rule.higher_better else home_val < away_val
        if home_wins:
            home_score += 1
        else:
            away_score += 1

    return home_score, away_score


class MatchupScorer:
    """Refresh matchup scores and outcome flags from team week stat lines."""

    def __init__(self, rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
                 goalie_start_minimum: float = 2):
        self.rules = list(rules)
        self.goalie_start_minimum = goalie_start_minimum

    def score_matchup(self, matchup: Dict, home_line: Mapping, away_line: Mapping,
                      home_goalie_starts: float, away_goalie_starts: float,
                      status: WeekStatus) -> Dict:
        """
        Return an updated copy of one matchup row.

        Outcome flags are only set for complete weeks; an active week keeps
        whatever flags the row already had.
        """
        home_score, away_score = score_categories(
            home_line, away_line, home_goalie_starts, away_goalie_starts,
            self.rules, self.goalie_start_minimum
        )

        updated = dict(matchup)
        updated['home_score'] = float(home_score)
        updated['away_score'] = float(away_score)

        if status.is_complete:
            # Level scores still go to the home side
            updated['home_win'] = home_score >= away_score
            updated['away_win'] = home_score < away_score
            updated['tie'] = False
            updated['is_complete'] = True

        return updated

    def score_season(self, matchups: pd.DataFrame, week_status: Dict[str, WeekStatus],
                     team_weeks: pd.DataFrame,
                     player_weeks: pd.DataFrame) -> Tuple[pd.DataFrame, List[str], List[str]]:
        """
        Score every matchup of active or complete weeks.

        Args:
            matchups: Prepared matchups frame
            week_status: Output of ``build_week_status``
            team_weeks: Prepared team week stat lines
            player_weeks: Prepared player week stat lines

        Returns:
            Tuple of (matchups frame with refreshed rows, ids of the scored
            matchups, warning messages for matchups skipped on missing lines)
        """
        lines = {
            (row['team_id'], row['week_id']): row
            for row in team_weeks.to_dict('records')
        }
        goalie_starts = build_goalie_starts(player_weeks)

        rows = []
        scored_ids = []
        warnings = []
        for m in matchups.to_dict('records'):
            status = week_status.get(m['week_id'])
            if status is None or not (status.is_active or status.is_complete):
                rows.append(m)
                continue

            home_key = (m['home_team_id'], m['week_id'])
            away_key = (m['away_team_id'], m['week_id'])
            if home_key not in lines or away_key not in lines:
                warnings.append(f"Matchup {m['id']}: missing team week stat line, not scored")
                rows.append(m)
                continue

            rows.append(self.score_matchup(
                m, lines[home_key], lines[away_key],
                goalie_starts.get(home_key, 0.0), goalie_starts.get(away_key, 0.0),
                status
            ))
            scored_ids.append(m['id'])

        logger.info(f"Scored {len(scored_ids)}/{len(matchups)} matchups")
        scored = pd.DataFrame(rows, columns=matchups.columns)
        for col in ['home_win', 'away_win', 'tie', 'is_complete']:
            scored[col] = scored[col].astype("boolean")
        return scored, scored_ids, warnings
