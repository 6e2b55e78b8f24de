#!/usr/bin/env python3
"""
Power Rankings and Standings Engine

Runs the full season pipeline against a stat repository:

1. Load and validate the season's teams, weeks, matchups and stat lines
2. Score matchups category by category
3. Fold weeks in order through Elo, performance and composite ranking
4. Build standings per season segment with tie-break ranking
5. Denormalize each week's power rank onto its matchups

Every output row is recomputed from scratch and upserted by natural key,
so re-running a season over unchanged input leaves the store unchanged.
"""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
import argparse
import logging

import numpy as np
import pandas as pd

from league_rankings.analytics.composite import CompositeRankingEngine
from league_rankings.analytics.elo import EloRatingEngine
from league_rankings.analytics.matchup_scorer import MatchupScorer, WeekStatus, build_week_status
from league_rankings.analytics.performance import PerformanceScoreEngine
from league_rankings.analytics.standings import StandingsEngine, STANDING_COLUMNS
from league_rankings.analytics.utils_stats import natural_key, parse_number
from league_rankings.config import (
    PLAYOFFS, REGULAR_SEASON, SEASON_TYPES, RankingConfig, load_config
)
from league_rankings.errors import ConfigurationError, PersistenceWriteFailure
from league_rankings.io.repository import (
    MATCHUPS, TEAM_SEASON_STANDINGS, TEAM_WEEK_STAT_LINES, CsvRepository, StatRepository, UpsertResult
)
from league_rankings.io.safe_write import safe_write_json
from league_rankings.schema.coercion import normalize_id
from league_rankings.schema.league_schema import (
    prepare_matchups, prepare_player_weeks, prepare_team_weeks, prepare_teams, prepare_weeks
)
from league_rankings.utils.logger import get_logger

logger = logging.getLogger(__name__)

MATCHUP_SCORE_COLUMNS = ['id', 'home_score', 'away_score', 'home_win', 'away_win', 'tie', 'is_complete']
MATCHUP_RANK_COLUMNS = ['id', 'home_rank', 'away_rank']
TEAM_WEEK_KEYS = ['team_id', 'week_id']
TEAM_WEEK_POWER_COLUMNS = [
    'team_id', 'week_id', 'season_id',
    'power_elo', 'power_elo_pre', 'power_elo_post', 'power_elo_delta',
    'power_elo_expected', 'power_elo_k', 'power_stat_score', 'power_stat_ewma',
    'power_composite', 'power_rating', 'power_rk',
]
STANDING_KEYS = ['team_id', 'season_id', 'season_type']


@dataclass
class SeasonData:
    """Prepared input tables of one season."""
    teams: pd.DataFrame
    weeks: pd.DataFrame
    matchups: pd.DataFrame
    team_weeks: pd.DataFrame
    player_weeks: pd.DataFrame


@dataclass
class RunResult:
    """Outcome of one season run."""
    season_id: str
    dry_run: bool = False
    today: Optional[date] = None
    no_data: bool = False
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    partial_data_gaps: int = 0
    weeks_processed: int = 0
    frames: Dict[str, pd.DataFrame] = field(default_factory=dict, repr=False)

    def warn(self, message: str) -> None:
        """Record a distinct non-fatal warning."""
        if message not in self.warnings:
            self.warnings.append(message)
            logger.warning(message)

    def summary(self) -> Dict[str, Any]:
        return {
            'season_id': self.season_id,
            'dry_run': self.dry_run,
            'today': self.today.isoformat() if self.today else None,
            'no_data': self.no_data,
            'weeks_processed': self.weeks_processed,
            'partial_data_gaps': self.partial_data_gaps,
            'counts': self.counts,
            'warnings': list(self.warnings),
        }


def week_sort_key(week: Mapping) -> tuple:
    """Chronological key: sort order, then start date, then id."""
    order = parse_number(week.get('sort_order'))
    start = week.get('start_date')
    has_start = start is not None and not pd.isna(start)
    return (
        bool(np.isnan(order)), 0.0 if np.isnan(order) else order,
        not has_start, pd.Timestamp(start) if has_start else pd.Timestamp.min,
        natural_key(week['id']),
    )


def order_weeks(weeks: pd.DataFrame) -> List[Dict]:
    """Week rows in strict chronological order."""
    return sorted(weeks.to_dict('records'), key=week_sort_key)


class RankingEngine:
    """
    Season ranking pipeline bound to a repository and a configuration.

    Args:
        repository: Stat repository to read inputs from and upsert outputs to
        config: Ranking configuration

    Raises:
        ConfigurationError: When either collaborator is missing or the
            configuration is invalid
    """

    def __init__(self, repository: StatRepository, config: RankingConfig):
        if repository is None:
            raise ConfigurationError("A stat repository is required")
        if config is None:
            raise ConfigurationError("A ranking configuration is required")
        config.validate()
        self.repository = repository
        self.config = config

    def load_season(self, season_id: str, result: RunResult) -> SeasonData:
        """Fetch and prepare every input table of a season."""
        repo = self.repository
        cfg = self.config
        warnings: List[str] = []

        numeric_columns = cfg.category_fields + [cfg.rating_field]
        if cfg.talent_field:
            numeric_columns.append(cfg.talent_field)

        data = SeasonData(
            teams=prepare_teams(repo.fetch_teams(season_id)),
            weeks=prepare_weeks(repo.fetch_weeks(season_id)),
            matchups=prepare_matchups(repo.fetch_matchups(season_id), warnings),
            team_weeks=prepare_team_weeks(repo.fetch_team_weeks(season_id), numeric_columns, warnings),
            player_weeks=prepare_player_weeks(repo.fetch_player_weeks(season_id)),
        )
        for message in warnings:
            result.warn(message)

        logger.info(f"Loaded {len(data.teams)} teams, {len(data.weeks)} weeks, "
                    f"{len(data.matchups)} matchups, {len(data.team_weeks)} team week lines")
        return data

    def run(self, season_id: Any, today: Optional[date] = None) -> RunResult:
        """
        Run the full pipeline for one season.

        Args:
            season_id: Season to rank
            today: Date used to classify weeks (defaults to the configured
                TODAY, then the current date)

        Returns:
            RunResult with per-batch counts, warnings and computed frames

        Raises:
            ConfigurationError: If no season id is given
            PersistenceWriteFailure: If an upsert fails; earlier batches
                stay applied
        """
        season_key = normalize_id(season_id)
        if not season_key:
            raise ConfigurationError("A season id is required")
        cfg = self.config
        today = today or cfg.today or date.today()
        result = RunResult(season_id=season_key, dry_run=cfg.dry_run, today=today)

        logger.info(f"Power rankings run: season={season_key} type={cfg.season_type or 'ALL'} "
                    f"today={today} dry_run={cfg.dry_run}")

        # Stage 1: inputs
        logger.info("Stage 1: Loading season data")
        data = self.load_season(season_key, result)
        if data.weeks.empty or data.teams.empty:
            result.no_data = True
            logger.info(f"No weeks or teams found for season {season_key}, nothing to update")
            return result

        team_ids = sorted(data.teams['id'], key=natural_key)
        known = set(team_ids)
        for m in data.matchups.to_dict('records'):
            for side in ('home_team_id', 'away_team_id'):
                if m[side] not in known:
                    result.warn(f"Matchup {m['id']}: unknown team {m[side]}")

        # Stage 2: matchup scores
        logger.info("Stage 2: Scoring matchups")
        week_status = build_week_status(data.weeks, today)
        scorer = MatchupScorer(cfg.category_rules, cfg.goalie_start_minimum)
        matchups, scored_ids, scoring_warnings = scorer.score_season(
            data.matchups, week_status, data.team_weeks, data.player_weeks
        )
        for message in scoring_warnings:
            result.warn(message)
        result.partial_data_gaps += len(scoring_warnings)
        scored_rows = matchups[matchups['id'].isin(scored_ids)][MATCHUP_SCORE_COLUMNS]
        self._persist(MATCHUPS, ['id'], scored_rows, result, 'matchup_scores')

        # Stage 3: ratings
        logger.info("Stage 3: Folding weeks through Elo, performance and composite")
        composite, week_rows = self.compute_power(data, matchups, week_status, team_ids, season_key, result)
        team_week_rows = pd.DataFrame(week_rows, columns=TEAM_WEEK_POWER_COLUMNS)
        # Power columns only go onto stat lines that exist; a snapshot for a
        # team without a line must not create one.
        existing = team_week_rows.set_index(TEAM_WEEK_KEYS).index.isin(
            data.team_weeks.set_index(TEAM_WEEK_KEYS).index
        )
        self._persist(TEAM_WEEK_STAT_LINES, TEAM_WEEK_KEYS, team_week_rows[existing],
                      result, 'team_week_power')

        # Stage 4: standings
        logger.info("Stage 4: Building standings")
        standings = self.compute_standings(data, matchups, composite, team_ids, season_key)
        self._persist(TEAM_SEASON_STANDINGS, STANDING_KEYS, standings, result, 'team_season_standings')

        # Stage 5: rank at time of matchup
        logger.info("Stage 5: Denormalizing weekly power ranks onto matchups")
        rank_rows = matchup_ranks(matchups, team_week_rows)
        self._persist(MATCHUPS, ['id'], rank_rows, result, 'matchup_ranks')

        if not rank_rows.empty:
            matchups = matchups.drop(columns=['home_rank', 'away_rank'], errors='ignore')
            matchups = matchups.merge(rank_rows, on='id', how='left')
        result.frames = {
            MATCHUPS: matchups,
            TEAM_WEEK_STAT_LINES: team_week_rows,
            TEAM_SEASON_STANDINGS: standings,
        }

        self._log_summary(result)
        return result

    def compute_power(self, data: SeasonData, matchups: pd.DataFrame,
                      week_status: Mapping[str, WeekStatus], team_ids: Sequence[str],
                      season_id: str, result: RunResult):
        """
        Fold the in-scope weeks through the rating engines in order.

        Only weeks that are active or complete are processed, restricted to
        the configured season type when one is set.

        Returns:
            Tuple of (CompositeRankingEngine holding the season snapshots,
            list of team week power rows)
        """
        cfg = self.config
        weeks = [
            w for w in order_weeks(data.weeks)
            if (week_status[w['id']].is_complete or week_status[w['id']].is_active)
            and (cfg.season_type is None or w['week_type'] == cfg.season_type)
        ]

        lines_by_week: Dict[str, Dict[str, Dict]] = {}
        for row in data.team_weeks.to_dict('records'):
            lines_by_week.setdefault(row['week_id'], {})[row['team_id']] = row
        matchups_by_week: Dict[str, List[Dict]] = {}
        for m in sorted(matchups.to_dict('records'), key=lambda r: natural_key(r['id'])):
            matchups_by_week.setdefault(m['week_id'], []).append(m)

        elo = EloRatingEngine(cfg)
        elo.seed(team_ids)
        performance = PerformanceScoreEngine(cfg)
        performance.reset(team_ids)
        composite = CompositeRankingEngine(cfg)

        rows = []
        playoff_index = 0
        for week in weeks:
            week_id = week['id']
            week_type = week['week_type']
            week_matchups = matchups_by_week.get(week_id, [])
            lines = lines_by_week.get(week_id, {})

            elo_records, elo_warnings, skipped = elo.process_week(
                week_id, week_type, week_matchups, playoff_index
            )
            if week_type == PLAYOFFS:
                playoff_index += 1
            for message in elo_warnings:
                result.warn(message)

            playing = {m[side] for m in week_matchups for side in ('home_team_id', 'away_team_id')}
            gaps = [tid for tid in team_ids if tid not in lines or tid not in playing]
            result.partial_data_gaps += len(gaps) + skipped
            missing_lines = sum(1 for tid in team_ids if tid not in lines)
            if missing_lines:
                result.warn(f"Week {week_id}: {missing_lines} team(s) without a stat line")

            perf_records = performance.score_week(week_id, team_ids, lines, week_matchups)
            for snapshot in composite.build_week(week_id, week_type, elo_records, perf_records):
                row = snapshot.to_row()
                row['season_id'] = season_id
                rows.append(row)

        result.weeks_processed = len(weeks)
        logger.info(f"Processed {len(weeks)} week(s), {len(rows)} team week snapshots")
        return composite, rows

    def compute_standings(self, data: SeasonData, matchups: pd.DataFrame,
                          composite: CompositeRankingEngine, team_ids: Sequence[str],
                          season_id: str) -> pd.DataFrame:
        """
        Standings rows for every season segment in scope.

        The regular season lists every team; playoff and losers tournament
        segments list the teams that appear in their matchups.
        """
        cfg = self.config
        ordered = order_weeks(data.weeks)
        position = {w['id']: i for i, w in enumerate(ordered)}
        week_type = {w['id']: w['week_type'] for w in ordered}
        present = {w['week_type'] for w in ordered}
        segments = [cfg.season_type] if cfg.season_type else [t for t in SEASON_TYPES if t in present]

        conference_by_team = {
            row['id']: row['conference_id'] for row in data.teams.to_dict('records')
        }
        known = set(team_ids)
        engine = StandingsEngine()

        frames = []
        for segment in segments:
            segment_matchups = sorted(
                (m for m in matchups.to_dict('records') if week_type.get(m['week_id']) == segment),
                key=lambda m: (position[m['week_id']], natural_key(m['id']))
            )
            if segment == REGULAR_SEASON:
                ids = list(team_ids)
            else:
                involved = {m[side] for m in segment_matchups for side in ('home_team_id', 'away_team_id')}
                ids = sorted(involved & known, key=natural_key)
            if not ids:
                continue

            power = {tid: snap.to_row() for tid, snap in composite.season_snapshot(segment).items()}
            frames.append(engine.build_segment(
                season_id, segment, ids, segment_matchups, conference_by_team, power
            ))

        if not frames:
            return pd.DataFrame(columns=STANDING_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def _persist(self, table: str, key_columns: List[str], rows: pd.DataFrame,
                 result: RunResult, label: str) -> None:
        if self.config.dry_run:
            result.counts[label] = {'rows': len(rows)}
            logger.info(f"[dry-run] {label}: would upsert {len(rows)} row(s) into {table}")
            return
        if rows.empty:
            result.counts[label] = {'created': 0, 'updated': 0, 'unchanged': 0}
            return

        try:
            outcome: UpsertResult = self.repository.upsert(table, key_columns, rows)
        except Exception as e:
            logger.error(f"Upsert of {label} into {table} failed: {e}")
            raise PersistenceWriteFailure(table, e) from e

        result.counts[label] = {
            'created': outcome.created,
            'updated': outcome.updated,
            'unchanged': outcome.unchanged,
        }

    def _log_summary(self, result: RunResult) -> None:
        logger.info("=" * 60)
        logger.info(f"RUN SUMMARY season={result.season_id} dry_run={result.dry_run}")
        logger.info(f"  Weeks processed: {result.weeks_processed}")
        for label, counts in result.counts.items():
            logger.info(f"  {label}: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
        logger.info(f"  Partial data gaps: {result.partial_data_gaps}")
        if result.warnings:
            logger.info(f"  {len(result.warnings)} distinct warning(s):")
            for message in result.warnings:
                logger.info(f"    {message}")
        logger.info("=" * 60)


def matchup_ranks(matchups: pd.DataFrame, team_week_rows: pd.DataFrame) -> pd.DataFrame:
    """
    Power rank of each side at the time of the matchup.

    Only matchups of processed weeks get a row.
    """
    if team_week_rows.empty or matchups.empty:
        return pd.DataFrame(columns=MATCHUP_RANK_COLUMNS)

    rank = {
        (row['team_id'], row['week_id']): row['power_rk']
        for row in team_week_rows.to_dict('records')
    }
    rows = []
    for m in matchups.to_dict('records'):
        home = rank.get((m['home_team_id'], m['week_id']))
        away = rank.get((m['away_team_id'], m['week_id']))
        if home is None and away is None:
            continue
        rows.append({'id': m['id'], 'home_rank': home, 'away_rank': away})
    return pd.DataFrame(rows, columns=MATCHUP_RANK_COLUMNS)


def run_power_rankings(season_id: Any, repository: StatRepository,
                       config: Optional[RankingConfig] = None,
                       today: Optional[date] = None) -> RunResult:
    """Run one season with the packaged configuration unless ``config`` is given."""
    engine = RankingEngine(repository, config or load_config())
    return engine.run(season_id, today=today)


def main():
    """CLI entry point for the ranking engine."""
    parser = argparse.ArgumentParser(description="League power rankings and standings engine")
    parser.add_argument("--season", type=str, required=True,
                        help="Season id to rank")
    parser.add_argument("--data-dir", type=str, default="data",
                        help="Directory holding one CSV per table")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML file layered over the packaged configuration")
    parser.add_argument("--season-type", type=str, choices=SEASON_TYPES, default=None,
                        help="Restrict the run to one season segment")
    parser.add_argument("--today", type=str, default=None,
                        help="Date used to classify weeks (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Compute everything, write nothing")
    parser.add_argument("--verbose", action="store_true",
                        help="Debug logging")
    parser.add_argument("--checks", action="store_true",
                        help="Run integrity checks after the run")
    parser.add_argument("--summary-out", type=str, default=None,
                        help="Write the run summary as JSON")

    args = parser.parse_args()

    overrides: Dict[str, Any] = {}
    if args.season_type:
        overrides['SEASON_TYPE'] = args.season_type
    if args.today:
        overrides['TODAY'] = args.today
    if args.dry_run:
        overrides['DRY_RUN'] = True
    if args.verbose:
        overrides['VERBOSE'] = True

    config = load_config(args.config, overrides)

    get_logger("league_rankings", verbose=config.verbose)

    try:
        repository = CsvRepository(args.data_dir)
        result = RankingEngine(repository, config).run(args.season)
        summary = result.summary()

        if args.checks and not result.no_data:
            from league_rankings.validators.integrity_checks import run_for_season
            checks = run_for_season(repository, args.season, config, result)
            summary['integrity_checks'] = [c.to_dict() for c in checks]

        if args.summary_out:
            safe_write_json(summary, Path(args.summary_out))
            logger.info(f"Summary saved to {args.summary_out}")

        print(f"Ranking complete: {result.weeks_processed} week(s) processed for season {result.season_id}")

    except Exception as e:
        logger.error(f"Ranking failed: {e}")
        raise


if __name__ == "__main__":
    main()
