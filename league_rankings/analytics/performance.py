#!/usr/bin/env python3
"""
Weekly performance score.

Each week every team gets a raw score blended from four z-space signals:
category stats, the stat line rating, matchup points and matchup margin
(plus an optional talent signal). The raw score is smoothed with an EWMA
that carries across weeks of the run.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from league_rankings.analytics.elo import matchup_points
from league_rankings.analytics.utils_stats import ewma_update, parse_number, population_zscores
from league_rankings.config import CategoryRule, RankingConfig

logger = logging.getLogger(__name__)


@dataclass
class PerformanceWeekRecord:
    team_id: str
    week_id: str
    raw: Optional[float]
    ewma: float


def category_zscores(team_ids: Sequence[str], lines: Mapping[str, Mapping],
                     rules: Sequence[CategoryRule]) -> pd.Series:
    """
    Average directional z-score across categories.

    Blank values are excluded from both the population and the team's
    average; a team with no category data scores 0.

    Args:
        team_ids: Teams of the season
        lines: Stat line per team for the week
        rules: Category rules (direction per field)

    Returns:
        Series indexed by team id
    """
    total = pd.Series(0.0, index=list(team_ids))
    count = pd.Series(0, index=list(team_ids))

    for rule in rules:
        values = pd.Series(
            {tid: parse_number((lines.get(tid) or {}).get(rule.field)) for tid in team_ids},
            dtype=float
        )
        z = population_zscores(values)
        if z.empty:
            continue
        if not rule.higher_better:
            z = -z
        total.loc[z.index] += z
        count.loc[z.index] += 1

    return (total / count.replace(0, np.nan)).fillna(0.0)


def signal_zscores(values: Mapping[str, Optional[float]], team_ids: Sequence[str]) -> pd.Series:
    """Z-score one signal; teams without a value get 0."""
    series = pd.Series({tid: values.get(tid) for tid in team_ids}, dtype=float)
    return population_zscores(series).reindex(series.index).fillna(0.0)


def matchup_metrics(matchups: List[Mapping]) -> Dict[str, Dict[str, float]]:
    """
    Sum matchup points and score margin per team for one week.

    Returns:
        Dict with 'points' and 'margin' maps keyed by team id
    """
    points: Dict[str, float] = {}
    margin: Dict[str, float] = {}
    for m in matchups:
        home_id = m['home_team_id']
        away_id = m['away_team_id']

        pts = matchup_points(m)
        if pts is not None:
            points[home_id] = points.get(home_id, 0.0) + pts[0]
            points[away_id] = points.get(away_id, 0.0) + pts[1]

        home = parse_number(m.get('home_score'))
        away = parse_number(m.get('away_score'))
        if not (np.isnan(home) or np.isnan(away)):
            margin[home_id] = margin.get(home_id, 0.0) + (home - away)
            margin[away_id] = margin.get(away_id, 0.0) - (home - away)

    return {'points': points, 'margin': margin}


class PerformanceScoreEngine:
    """Weekly z-score blend with EWMA smoothing across the run."""

    def __init__(self, config: RankingConfig):
        self.config = config
        self.ewma: Dict[str, float] = {}

    def reset(self, team_ids: Sequence[str]) -> None:
        self.ewma = {tid: 0.0 for tid in team_ids}

    def weights(self) -> Dict[str, float]:
        """Signal weights, scaled down to make room for the talent weight when enabled."""
        cfg = self.config
        talent = cfg.perf_talent_weight if cfg.talent_field else 0.0
        scale = 1.0 - talent
        return {
            'category': cfg.perf_category_weight * scale,
            'rating': cfg.perf_rating_weight * scale,
            'points': cfg.perf_matchup_points_weight * scale,
            'margin': cfg.perf_matchup_margin_weight * scale,
            'talent': talent,
        }

    def score_week(self, week_id: str, team_ids: Sequence[str], lines: Mapping[str, Mapping],
                   matchups: List[Mapping]) -> Dict[str, PerformanceWeekRecord]:
        """
        Score one week and advance the EWMA.

        A team with neither a stat line nor a matchup this week keeps its
        previous EWMA and records no raw score.

        Args:
            week_id: Week being scored
            team_ids: Teams of the season
            lines: Stat line per team for the week
            matchups: Matchup rows of the week

        Returns:
            Record per team id
        """
        team_ids = list(team_ids)
        metrics = matchup_metrics(matchups)
        rating_field = self.config.rating_field

        cat_z = category_zscores(team_ids, lines, self.config.category_rules)
        ratings = {tid: parse_number((lines.get(tid) or {}).get(rating_field)) for tid in team_ids}
        rating_z = signal_zscores(ratings, team_ids)
        # Teams without a matchup contribute 0 to the points and margin populations
        pts_z = signal_zscores({tid: metrics['points'].get(tid, 0.0) for tid in team_ids}, team_ids)
        margin_z = signal_zscores({tid: metrics['margin'].get(tid, 0.0) for tid in team_ids}, team_ids)

        w = self.weights()
        raw = (w['category'] * cat_z + w['rating'] * rating_z
               + w['points'] * pts_z + w['margin'] * margin_z)
        if w['talent']:
            field = self.config.talent_field
            talent = {tid: parse_number((lines.get(tid) or {}).get(field)) for tid in team_ids}
            raw = raw + w['talent'] * signal_zscores(talent, team_ids)

        in_matchup = set()
        for m in matchups:
            in_matchup.update((m['home_team_id'], m['away_team_id']))

        records = {}
        for tid in team_ids:
            previous = self.ewma.get(tid, 0.0)
            if tid not in lines and tid not in in_matchup:
                records[tid] = PerformanceWeekRecord(tid, week_id, None, previous)
                continue
            score = float(raw.loc[tid])
            self.ewma[tid] = ewma_update(score, previous, self.config.ewma_alpha)
            records[tid] = PerformanceWeekRecord(tid, week_id, score, self.ewma[tid])

        return records
