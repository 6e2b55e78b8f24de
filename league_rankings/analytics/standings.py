#!/usr/bin/env python3
"""
Standings Engine

Accumulates win/loss records per team and season segment, and ranks the
regular season overall, per conference and across the wildcard pool.

Ranking sorts by wins, then team points, then team id. Teams level on
wins and team points form a tie group that is re-sorted by a head-to-head
mini-league among the group (wins, team points, categories won), then
season categories won, power rating and team id.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
import logging

import numpy as np
import pandas as pd

from league_rankings.analytics.utils_stats import natural_key, parse_number, to_number
from league_rankings.config import REGULAR_SEASON
from league_rankings.schema.coercion import to_flag

logger = logging.getLogger(__name__)

WILDCARD_CONFERENCE_CUTOFF = 3

STANDING_COLUMNS = [
    'team_id', 'season_id', 'season_type',
    'power_elo', 'power_stat_ewma', 'power_composite', 'power_rating', 'power_rk',
    'team_w', 'team_hw', 'team_hl', 'team_l', 'team_ccw', 'team_cchw', 'team_cchl', 'team_ccl',
    'streak', 'overall_rk', 'conference_rk', 'wildcard_rk',
]


def team_points(w: int, hw: int, hl: int) -> int:
    """
    League points from a record.

    A clean win is worth 3, a tie-break win 2, a tie-break loss 1 and a
    clean loss 0: ``(W - HW) * 3 + HW * 2 + HL``.
    """
    return (w - hw) * 3 + hw * 2 + hl


def has_outcome(matchup: Mapping) -> bool:
    """True when both scores and at least one outcome flag are present."""
    home = parse_number(matchup.get('home_score'))
    away = parse_number(matchup.get('away_score'))
    if np.isnan(home) or np.isnan(away):
        return False
    return any(to_flag(matchup.get(col)) is True for col in ('home_win', 'away_win', 'tie'))


def _scores_level(matchup: Mapping) -> bool:
    return parse_number(matchup.get('home_score')) == parse_number(matchup.get('away_score'))


@dataclass
class StandingRecord:
    """Accumulated record of one team in one season segment."""
    team_id: str
    conference_id: Optional[str] = None
    w: int = 0
    hw: int = 0
    hl: int = 0
    l: int = 0
    ccw: int = 0
    cchw: int = 0
    cchl: int = 0
    ccl: int = 0
    categories_for: float = 0.0
    streak: str = ""
    power_rating: Optional[float] = None
    results: List[str] = field(default_factory=list, repr=False)

    @property
    def team_points(self) -> int:
        return team_points(self.w, self.hw, self.hl)


def compute_streak(results: Sequence[str]) -> str:
    """Length and type of the trailing run of identical results, e.g. ``"3W"``."""
    if not results:
        return ""
    last = results[-1]
    count = 0
    for result in reversed(results):
        if result != last:
            break
        count += 1
    return f"{count}{last}"


def accumulate_records(team_ids: Iterable[str], matchups: Sequence[Mapping],
                       conference_by_team: Mapping[str, Optional[str]]) -> Dict[str, StandingRecord]:
    """
    Build standing records from a segment's matchups.

    Args:
        team_ids: Teams to produce records for
        matchups: Segment matchups in chronological order; only those
            with an outcome are counted
        conference_by_team: Conference id per team (None when absent)

    Returns:
        Record per team id
    """
    records = {
        tid: StandingRecord(team_id=tid, conference_id=conference_by_team.get(tid))
        for tid in team_ids
    }

    for m in matchups:
        if not has_outcome(m):
            continue
        home_id = m['home_team_id']
        away_id = m['away_team_id']
        level = _scores_level(m)
        home_conf = conference_by_team.get(home_id)
        away_conf = conference_by_team.get(away_id)
        conference_game = home_conf is not None and home_conf == away_conf

        home_win = to_flag(m.get('home_win')) is True
        away_win = not home_win and to_flag(m.get('away_win')) is True

        for team_id, is_home in ((home_id, True), (away_id, False)):
            record = records.get(team_id)
            if record is None:
                continue
            record.categories_for += to_number(m.get('home_score' if is_home else 'away_score'))

            if not (home_win or away_win):
                continue

            won = home_win if is_home else away_win
            if won:
                record.w += 1
                record.hw += int(level)
                if conference_game:
                    record.ccw += 1
                    record.cchw += int(level)
                record.results.append("W")
            else:
                record.l += 1
                record.hl += int(level)
                if conference_game:
                    record.ccl += 1
                    record.cchl += int(level)
                record.results.append("L")

    for record in records.values():
        record.streak = compute_streak(record.results)
    return records


@dataclass
class HeadToHead:
    w: int = 0
    hw: int = 0
    hl: int = 0
    categories_for: float = 0.0

    @property
    def team_points(self) -> int:
        return team_points(self.w, self.hw, self.hl)


def head_to_head(group: Set[str], matchups: Sequence[Mapping]) -> Dict[str, HeadToHead]:
    """Mini-league of the matchups played between members of ``group``."""
    stats = {tid: HeadToHead() for tid in group}
    for m in matchups:
        home_id = m['home_team_id']
        away_id = m['away_team_id']
        if home_id not in group or away_id not in group or not has_outcome(m):
            continue

        stats[home_id].categories_for += to_number(m.get('home_score'))
        stats[away_id].categories_for += to_number(m.get('away_score'))
        level = _scores_level(m)
        if to_flag(m.get('home_win')) is True:
            winner, loser = home_id, away_id
        elif to_flag(m.get('away_win')) is True:
            winner, loser = away_id, home_id
        else:
            continue
        stats[winner].w += 1
        if level:
            stats[winner].hw += 1
            stats[loser].hl += 1
    return stats


def sort_with_tiebreakers(records: Sequence[StandingRecord],
                          matchups: Sequence[Mapping]) -> List[StandingRecord]:
    """
    Order standing records with head-to-head tie-break sub-grouping.

    Args:
        records: Records to order
        matchups: Segment matchups used for head-to-head tie-breaks

    Returns:
        Records ordered best first
    """
    ordered = sorted(records, key=lambda r: (-r.w, -r.team_points, natural_key(r.team_id)))

    i = 0
    while i < len(ordered):
        j = i + 1
        while (j < len(ordered) and ordered[j].w == ordered[i].w
               and ordered[j].team_points == ordered[i].team_points):
            j += 1

        if j - i > 1:
            group = ordered[i:j]
            h2h = head_to_head({r.team_id for r in group}, matchups)

            def tiebreak_key(r: StandingRecord) -> Tuple:
                stats = h2h[r.team_id]
                power = to_number(r.power_rating, float('-inf'))
                return (-stats.w, -stats.team_points, -stats.categories_for,
                        -r.categories_for, -power, natural_key(r.team_id))

            ordered[i:j] = sorted(group, key=tiebreak_key)
        i = j

    return ordered


@dataclass
class StandingRanks:
    overall_rk: Optional[int] = None
    conference_rk: Optional[int] = None
    wildcard_rk: Optional[int] = None


def rank_standings(records: Mapping[str, StandingRecord],
                   matchups: Sequence[Mapping]) -> Dict[str, StandingRanks]:
    """
    Assign overall, conference and wildcard ranks.

    Conference ranks are computed from a separate sort of each conference.
    The wildcard pool is every team with a conference ranked below the
    top three of it. Teams outside a conference have no conference or
    wildcard rank.
    """
    ranks = {tid: StandingRanks() for tid in records}

    for i, record in enumerate(sort_with_tiebreakers(list(records.values()), matchups)):
        ranks[record.team_id].overall_rk = i + 1

    by_conference: Dict[str, List[StandingRecord]] = {}
    for record in records.values():
        if record.conference_id:
            by_conference.setdefault(record.conference_id, []).append(record)
    for members in by_conference.values():
        for i, record in enumerate(sort_with_tiebreakers(members, matchups)):
            ranks[record.team_id].conference_rk = i + 1

    pool = [
        r for r in records.values()
        if r.conference_id and ranks[r.team_id].conference_rk > WILDCARD_CONFERENCE_CUTOFF
    ]
    for i, record in enumerate(sort_with_tiebreakers(pool, matchups)):
        ranks[record.team_id].wildcard_rk = i + 1

    return ranks


class StandingsEngine:
    """Builds team season standing rows per segment."""

    def build_segment(self, season_id: str, season_type: str, team_ids: Sequence[str],
                      matchups: Sequence[Mapping], conference_by_team: Mapping[str, Optional[str]],
                      power_by_team: Mapping[str, Mapping]) -> pd.DataFrame:
        """
        Standing rows for one season segment.

        Args:
            season_id: Season id
            season_type: RS, PO or LT
            team_ids: Teams that get a row
            matchups: Segment matchups in chronological order
            conference_by_team: Conference id per team
            power_by_team: Season power fields per team (power_elo,
                power_stat_ewma, power_composite, power_rating, power_rk)

        Returns:
            DataFrame keyed by (team_id, season_id, season_type); ranks are
            only filled for the regular season
        """
        records = accumulate_records(team_ids, matchups, conference_by_team)
        for tid, record in records.items():
            record.power_rating = (power_by_team.get(tid) or {}).get('power_rating')

        if season_type == REGULAR_SEASON and records:
            ranks = rank_standings(records, [m for m in matchups if has_outcome(m)])
        else:
            ranks = {tid: StandingRanks() for tid in records}

        rows = []
        for tid in sorted(records, key=natural_key):
            record = records[tid]
            power = power_by_team.get(tid) or {}
            rows.append({
                'team_id': tid,
                'season_id': season_id,
                'season_type': season_type,
                'power_elo': power.get('power_elo'),
                'power_stat_ewma': power.get('power_stat_ewma'),
                'power_composite': power.get('power_composite'),
                'power_rating': power.get('power_rating'),
                'power_rk': power.get('power_rk'),
                'team_w': record.w,
                'team_hw': record.hw,
                'team_hl': record.hl,
                'team_l': record.l,
                'team_ccw': record.ccw,
                'team_cchw': record.cchw,
                'team_cchl': record.cchl,
                'team_ccl': record.ccl,
                'streak': record.streak,
                'overall_rk': ranks[tid].overall_rk,
                'conference_rk': ranks[tid].conference_rk,
                'wildcard_rk': ranks[tid].wildcard_rk,
            })

        logger.info(f"Built {len(rows)} {season_type} standing rows")
        return pd.DataFrame(rows, columns=STANDING_COLUMNS)
