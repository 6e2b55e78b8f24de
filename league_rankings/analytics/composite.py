#!/usr/bin/env python3
"""
Composite power ranking.

Blends the z-scored post-week Elo with the smoothed performance score,
scales the result to a 0-100 power rating and ranks the week's teams.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional
import logging

import pandas as pd

from league_rankings.analytics.elo import EloWeekRecord
from league_rankings.analytics.performance import PerformanceWeekRecord
from league_rankings.analytics.utils_stats import minmax_0_100, natural_key, population_zscores
from league_rankings.config import RankingConfig

logger = logging.getLogger(__name__)


@dataclass
class PowerWeekSnapshot:
    """Computed power fields of one team for one week."""
    team_id: str
    week_id: str
    season_type: str
    power_elo_pre: float
    power_elo_post: float
    power_elo_delta: float
    power_elo_expected: Optional[float]
    power_elo_k: Optional[float]
    power_stat_score: Optional[float]
    power_stat_ewma: float
    power_composite: float
    power_rating: float
    power_rk: int

    @property
    def power_elo(self) -> float:
        return self.power_elo_post

    def to_row(self) -> Dict:
        row = asdict(self)
        row['power_elo'] = self.power_elo_post
        return row


def rank_by_composite(composites: Mapping[str, float]) -> Dict[str, int]:
    """Rank 1..N by composite descending, then team id ascending."""
    ordered = sorted(composites, key=lambda tid: (-composites[tid], natural_key(tid)))
    return {tid: i + 1 for i, tid in enumerate(ordered)}


class CompositeRankingEngine:
    """Builds weekly snapshots and keeps the latest snapshot per season segment."""

    def __init__(self, config: RankingConfig):
        self.config = config
        self.season_snapshots: Dict[str, Dict[str, PowerWeekSnapshot]] = {}

    def build_week(self, week_id: str, season_type: str,
                   elo: Mapping[str, EloWeekRecord],
                   performance: Mapping[str, PerformanceWeekRecord]) -> List[PowerWeekSnapshot]:
        """
        Compose one week's snapshots.

        Args:
            week_id: Week being ranked
            season_type: Segment of the week
            elo: Elo record per team
            performance: Performance record per team

        Returns:
            Snapshots ordered by power rank
        """
        team_ids = list(elo)
        if not team_ids:
            return []

        elo_z = population_zscores(pd.Series({tid: elo[tid].post for tid in team_ids}, dtype=float))
        ewma = pd.Series({tid: performance[tid].ewma if tid in performance else 0.0 for tid in team_ids},
                         dtype=float)
        composite = self.config.w_elo * elo_z.reindex(ewma.index).fillna(0.0) + self.config.w_stat * ewma
        rating = minmax_0_100(composite)
        ranks = rank_by_composite(composite.to_dict())

        snapshots = []
        for tid in sorted(team_ids, key=lambda t: ranks[t]):
            e = elo[tid]
            p = performance.get(tid)
            snapshots.append(PowerWeekSnapshot(
                team_id=tid,
                week_id=week_id,
                season_type=season_type,
                power_elo_pre=e.pre,
                power_elo_post=e.post,
                power_elo_delta=e.delta,
                power_elo_expected=e.expected,
                power_elo_k=e.k,
                power_stat_score=p.raw if p else None,
                power_stat_ewma=p.ewma if p else 0.0,
                power_composite=float(composite.loc[tid]),
                power_rating=float(rating.loc[tid]),
                power_rk=ranks[tid],
            ))

        # Last week seen per segment wins
        self.season_snapshots[season_type] = {s.team_id: s for s in snapshots}
        return snapshots

    def season_snapshot(self, season_type: str) -> Dict[str, PowerWeekSnapshot]:
        return self.season_snapshots.get(season_type, {})
