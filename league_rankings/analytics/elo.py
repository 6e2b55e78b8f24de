#!/usr/bin/env python3
"""
Elo Rating Engine

Maintains one rating per team and folds matchup results into it week by
week. Each matchup moves the home and away ratings by equal and opposite
amounts, so the league total is conserved.

The actual score of a matchup blends a margin component (category score
difference scaled into [0, 1]) with a points component (3/2/1/0 for a
clean win, tie-break win, tie-break loss and clean loss). The K-factor
grows with the category margin and is scaled by the week type.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import logging

import numpy as np

from league_rankings.analytics.utils_stats import clamp01, parse_number
from league_rankings.config import LOSERS_TOURNAMENT, PLAYOFFS, RankingConfig
from league_rankings.schema.coercion import to_flag

logger = logging.getLogger(__name__)

CLEAN_WIN_POINTS = 3.0
TIE_BREAK_WIN_POINTS = 2.0
TIE_BREAK_LOSS_POINTS = 1.0
TIE_POINTS = 1.5


@dataclass
class EloWeekRecord:
    """Rating movement of one team over one week."""
    team_id: str
    week_id: str
    pre: float
    post: float
    delta: float
    expected: Optional[float] = None
    k: Optional[float] = None


def expected_score(rating_a: float, rating_b: float, scale: float = 400.0) -> float:
    """
    Logistic expected score of A against B.

    Args:
        rating_a: Rating of side A
        rating_b: Rating of side B
        scale: Rating gap that multiplies the odds by 10

    Returns:
        Expected score of A in [0, 1]
    """
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / scale))


def _scores(matchup: Mapping) -> Tuple[float, float]:
    return parse_number(matchup.get('home_score')), parse_number(matchup.get('away_score'))


def matchup_points(matchup: Mapping) -> Optional[Tuple[float, float]]:
    """
    Points earned by each side under the 3/2/1/0 scheme.

    Outcome flags win over scores. A win on level category scores is a
    tie-break result (2/1). Without flags the result is inferred from the
    scores, with level scores going to the home side.

    Returns:
        Tuple of (home_points, away_points), or None when the matchup has
        neither flags nor scores
    """
    home, away = _scores(matchup)
    has_scores = not (np.isnan(home) or np.isnan(away))
    level = has_scores and home == away

    if to_flag(matchup.get('home_win')) is True:
        return (TIE_BREAK_WIN_POINTS, TIE_BREAK_LOSS_POINTS) if level else (CLEAN_WIN_POINTS, 0.0)
    if to_flag(matchup.get('away_win')) is True:
        return (TIE_BREAK_LOSS_POINTS, TIE_BREAK_WIN_POINTS) if level else (0.0, CLEAN_WIN_POINTS)
    if to_flag(matchup.get('tie')) is True:
        return TIE_POINTS, TIE_POINTS

    if not has_scores:
        return None
    if level:
        return TIE_BREAK_WIN_POINTS, TIE_BREAK_LOSS_POINTS
    return (CLEAN_WIN_POINTS, 0.0) if home > away else (0.0, CLEAN_WIN_POINTS)


def actual_score(matchup: Mapping, category_count: int, margin_weight: float = 0.75) -> Optional[float]:
    """
    Home side's actual score in [0, 1].

    Args:
        matchup: Matchup row
        category_count: Number of scoring categories
        margin_weight: Weight of the margin component; the points
            component gets the remainder

    Returns:
        Blended score, whichever component exists when only one does, or
        None when neither does
    """
    home, away = _scores(matchup)
    margin_score = None
    if not (np.isnan(home) or np.isnan(away)) and category_count:
        margin_score = clamp01(0.5 + (home - away) / (2.0 * category_count))

    points = matchup_points(matchup)
    points_score = None if points is None else points[0] / CLEAN_WIN_POINTS

    if margin_score is None and points_score is None:
        return None
    if margin_score is None:
        return points_score
    if points_score is None:
        return margin_score
    return clamp01(margin_weight * margin_score + (1 - margin_weight) * points_score)


def week_k_multiplier(week_type: str, config: RankingConfig, playoff_round_index: int = 0) -> float:
    """K multiplier for a week type; playoffs step up by round."""
    if week_type == LOSERS_TOURNAMENT:
        return config.losers_k_multiplier
    if week_type == PLAYOFFS:
        return config.playoff_k_multiplier + config.playoff_round_step * max(0, playoff_round_index)
    return config.regular_season_k_multiplier


def k_factor(matchup: Mapping, week_type: str, config: RankingConfig,
             playoff_round_index: int = 0) -> float:
    """
    K-factor for one matchup.

    ``base_k * (1 + margin_k_multiplier * |home - away| / categories)``
    scaled by the week-type multiplier. Missing scores leave the margin
    term out.
    """
    home, away = _scores(matchup)
    k = config.base_k
    if not (np.isnan(home) or np.isnan(away)):
        k = config.base_k * (1 + config.margin_k_multiplier * abs(home - away) / config.category_count)
    return k * week_k_multiplier(week_type, config, playoff_round_index)


def playoff_round_index(matchup: Mapping, fallback_index: int) -> int:
    """Zero-based playoff round from the matchup's 1-based marker, else the week ordinal."""
    marker = parse_number(matchup.get('playoff_round'))
    if np.isnan(marker):
        return fallback_index
    return max(0, int(marker) - 1)


class EloRatingEngine:
    """Sequential week-by-week Elo ratings for one run."""

    def __init__(self, config: RankingConfig):
        self.config = config
        self.ratings: Dict[str, float] = {}

    def seed(self, team_ids: Iterable[str]) -> None:
        """Reset every team to the base rating."""
        self.ratings = {team_id: float(self.config.base_elo) for team_id in team_ids}

    def process_week(self, week_id: str, week_type: str, matchups: List[Mapping],
                     playoff_week_index: int = 0) -> Tuple[Dict[str, EloWeekRecord], List[str], int]:
        """
        Apply one week's matchups to the ratings.

        Args:
            week_id: Week being processed
            week_type: RS, PO or LT
            matchups: Matchup rows of the week
            playoff_week_index: Position of this week among playoff weeks,
                used when a matchup has no playoff round marker

        Returns:
            Tuple of (record per team, warnings, count of matchups skipped
            for lack of scores or outcome)
        """
        pre = dict(self.ratings)
        params: Dict[str, Tuple[float, float]] = {}
        warnings = []
        skipped = 0

        for m in matchups:
            home_id = m['home_team_id']
            away_id = m['away_team_id']
            if home_id not in self.ratings or away_id not in self.ratings:
                warnings.append(f"Matchup {m['id']}: team not in season, rating not updated")
                continue

            actual = actual_score(m, self.config.category_count, self.config.elo_margin_weight)
            if actual is None:
                skipped += 1
                continue

            expected_home = expected_score(self.ratings[home_id], self.ratings[away_id], self.config.elo_scale)
            round_index = playoff_round_index(m, playoff_week_index)
            k = k_factor(m, week_type, self.config, round_index)

            delta = k * (actual - expected_home)
            self.ratings[home_id] += delta
            self.ratings[away_id] -= delta

            for team_id, expected in ((home_id, expected_home), (away_id, 1.0 - expected_home)):
                if team_id in params:
                    warnings.append(f"Team {team_id} has more than one matchup in week {week_id}")
                    continue
                params[team_id] = (expected, k)

        records = {}
        for team_id, rating in self.ratings.items():
            expected, k = params.get(team_id, (None, None))
            records[team_id] = EloWeekRecord(
                team_id=team_id,
                week_id=week_id,
                pre=pre[team_id],
                post=rating,
                delta=rating - pre[team_id],
                expected=expected,
                k=k,
            )

        if skipped:
            logger.debug(f"Week {week_id}: {skipped} matchup(s) without scores or outcome")
        return records, warnings, skipped
