"""
integrity_checks.py
-------------------
Post-run integrity checks for a ranked season.

Each check inspects the season's tables after a run and reports PASS or
FAIL with a list of offending rows. A check that raises is reported as
ERROR and does not stop the remaining checks.

Checks:
- TEAM_WEEK_COVERAGE: every team in a scored week's matchup has a stat line
- MATCHUP_COMPLETION: matchups of completed weeks carry scores and an outcome
- DUPLICATE_TEAM_WEEK_KEYS: at most one stat line per (team, week)
- OUTCOME_CONSISTENCY: outcome flags agree with unequal category scores
- ELO_ZERO_SUM: the two sides of a matchup moved by opposite Elo deltas
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from league_rankings.analytics.matchup_scorer import WeekStatus, build_week_status
from league_rankings.analytics.standings import has_outcome
from league_rankings.analytics.utils_stats import parse_number
from league_rankings.config import RankingConfig
from league_rankings.errors import ConfigurationError
from league_rankings.io.repository import MATCHUPS, TEAM_WEEK_STAT_LINES, StatRepository
from league_rankings.schema.coercion import coerce_ids, to_flag
from league_rankings.schema.league_schema import prepare_weeks

logger = logging.getLogger(__name__)

PASS = "PASS"
FAIL = "FAIL"
ERROR = "ERROR"

ZERO_SUM_TOLERANCE = 1e-6
ISSUE_SAMPLE_SIZE = 5


@dataclass
class CheckResult:
    key: str
    status: str
    message: str
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CheckContext:
    """
    Tables a check may inspect.

    Attributes:
        weeks: Prepared weeks frame
        matchups: Matchups after the run (scores, flags and ranks)
        team_weeks: Team week stat lines as stored, key columns not
            deduplicated
        power: Team week power rows computed by the run
        week_status: Week classification used by the run
    """
    weeks: pd.DataFrame
    matchups: pd.DataFrame
    team_weeks: pd.DataFrame
    power: pd.DataFrame
    week_status: Dict[str, WeekStatus]


def _result(key: str, issues: List[str], ok_message: str, fail_message: str) -> CheckResult:
    if issues:
        return CheckResult(key, FAIL, fail_message.format(count=len(issues)), issues)
    return CheckResult(key, PASS, ok_message)


def _scored_week(context: CheckContext, week_id: Any) -> bool:
    status = context.week_status.get(week_id)
    return status is not None and (status.is_complete or status.is_active)


def check_team_week_coverage(context: CheckContext) -> CheckResult:
    """Every side of a matchup in an active or complete week has a stat line."""
    tw = context.team_weeks
    lines = set()
    if not tw.empty:
        lines = set(zip(coerce_ids(tw['team_id']), coerce_ids(tw['week_id'])))

    issues = []
    for m in context.matchups.to_dict('records'):
        if not _scored_week(context, m['week_id']):
            continue
        for side in ('home_team_id', 'away_team_id'):
            if (m[side], m['week_id']) not in lines:
                issues.append(f"matchup {m['id']}: no stat line for team {m[side]} in week {m['week_id']}")

    return _result("TEAM_WEEK_COVERAGE", issues,
                   "All matchup teams have stat lines",
                   "{count} matchup side(s) without a stat line")


def check_matchup_completion(context: CheckContext) -> CheckResult:
    """Matchups of completed weeks have both scores and an outcome flag."""
    issues = []
    for m in context.matchups.to_dict('records'):
        status = context.week_status.get(m['week_id'])
        if status is None or not status.is_complete:
            continue
        if not has_outcome(m):
            issues.append(f"matchup {m['id']} in completed week {m['week_id']} has no outcome")

    return _result("MATCHUP_COMPLETION", issues,
                   "All completed-week matchups have outcomes",
                   "{count} completed-week matchup(s) without an outcome")


def check_duplicate_team_week_keys(context: CheckContext) -> CheckResult:
    """At most one stat line per (team_id, week_id)."""
    tw = context.team_weeks
    issues = []
    if not tw.empty:
        keys = pd.DataFrame({'team_id': coerce_ids(tw['team_id']), 'week_id': coerce_ids(tw['week_id'])})
        dupes = keys[keys.duplicated(keep='first')]
        for row in dupes.drop_duplicates().to_dict('records'):
            issues.append(f"duplicate stat line for team {row['team_id']} in week {row['week_id']}")

    return _result("DUPLICATE_TEAM_WEEK_KEYS", issues,
                   "No duplicate team week keys",
                   "{count} duplicated team week key(s)")


def check_outcome_consistency(context: CheckContext) -> CheckResult:
    """Completed matchups with unequal scores have flags matching the scores."""
    issues = []
    for m in context.matchups.to_dict('records'):
        if to_flag(m.get('is_complete')) is not True:
            continue
        home = parse_number(m.get('home_score'))
        away = parse_number(m.get('away_score'))
        if np.isnan(home) or np.isnan(away) or home == away:
            continue

        home_win = to_flag(m.get('home_win')) is True
        away_win = to_flag(m.get('away_win')) is True
        tie = to_flag(m.get('tie')) is True
        if home_win != (home > away) or away_win == home_win or tie:
            issues.append(f"matchup {m['id']}: flags disagree with score {home:g}-{away:g}")

    return _result("OUTCOME_CONSISTENCY", issues,
                   "Outcome flags agree with scores",
                   "{count} matchup(s) with inconsistent outcome flags")


def check_elo_zero_sum(context: CheckContext) -> CheckResult:
    """
    Home and away Elo deltas of a matchup cancel out.

    Only teams with a single matchup in the week are comparable, since a
    week delta sums every matchup the team played.
    """
    power = context.power
    issues = []
    if not power.empty:
        delta = {
            (row['team_id'], row['week_id']): parse_number(row['power_elo_delta'])
            for row in power.to_dict('records')
        }
        matchups = context.matchups
        appearances = pd.concat([
            matchups[['home_team_id', 'week_id']].set_axis(['team_id', 'week_id'], axis=1),
            matchups[['away_team_id', 'week_id']].set_axis(['team_id', 'week_id'], axis=1),
        ]).value_counts().to_dict()

        for m in matchups.to_dict('records'):
            home_key = (m['home_team_id'], m['week_id'])
            away_key = (m['away_team_id'], m['week_id'])
            if home_key not in delta or away_key not in delta:
                continue
            if appearances.get(home_key, 0) > 1 or appearances.get(away_key, 0) > 1:
                continue
            total = delta[home_key] + delta[away_key]
            if abs(total) > ZERO_SUM_TOLERANCE:
                issues.append(f"matchup {m['id']}: Elo deltas sum to {total:.6f}")

    return _result("ELO_ZERO_SUM", issues,
                   "Elo deltas are zero-sum",
                   "{count} matchup(s) with non-zero Elo delta sum")


CHECKS: Dict[str, Callable[[CheckContext], CheckResult]] = {
    "TEAM_WEEK_COVERAGE": check_team_week_coverage,
    "MATCHUP_COMPLETION": check_matchup_completion,
    "DUPLICATE_TEAM_WEEK_KEYS": check_duplicate_team_week_keys,
    "OUTCOME_CONSISTENCY": check_outcome_consistency,
    "ELO_ZERO_SUM": check_elo_zero_sum,
}


def run_integrity_checks(context: CheckContext,
                         checks: Optional[Sequence[str]] = None) -> List[CheckResult]:
    """
    Run integrity checks against a season context.

    Args:
        context: Season tables to inspect
        checks: Check keys to run (all when None)

    Returns:
        One CheckResult per check, in the order run

    Raises:
        ConfigurationError: If an unknown check key is requested
    """
    keys = list(checks) if checks is not None else list(CHECKS)
    unknown = [key for key in keys if key not in CHECKS]
    if unknown:
        raise ConfigurationError(f"Unknown integrity check(s): {', '.join(unknown)}")

    results = []
    for key in keys:
        try:
            result = CHECKS[key](context)
        except Exception as e:
            logger.error(f"Integrity check {key} raised: {e}")
            result = CheckResult(key, ERROR, f"{type(e).__name__}: {e}")
        results.append(result)

        if result.status == PASS:
            logger.info(f"✅ {key}: {result.message}")
        elif result.status == FAIL:
            logger.warning(f"⚠️ {key}: {result.message}")
            for issue in result.issues[:ISSUE_SAMPLE_SIZE]:
                logger.warning(f"   {issue}")
        else:
            logger.error(f"❌ {key}: {result.message}")

    return results


def summarize_results(results: Sequence[CheckResult]) -> Dict[str, int]:
    """Count results per status."""
    summary = {PASS: 0, FAIL: 0, ERROR: 0}
    for result in results:
        summary[result.status] = summary.get(result.status, 0) + 1
    return summary


def run_for_season(repository: StatRepository, season_id: Any, config: RankingConfig,
                   result, checks: Optional[Sequence[str]] = None) -> List[CheckResult]:
    """
    Build a context from a finished run and check it.

    Args:
        repository: Repository the run read from
        season_id: Season that was ranked
        config: Configuration the run used
        result: RunResult of the run
        checks: Optional subset of check keys

    Returns:
        List of CheckResult
    """
    weeks = prepare_weeks(repository.fetch_weeks(season_id))
    today: date = result.today or config.today or date.today()
    context = CheckContext(
        weeks=weeks,
        matchups=result.frames.get(MATCHUPS, pd.DataFrame()),
        team_weeks=repository.fetch_team_weeks(season_id),
        power=result.frames.get(TEAM_WEEK_STAT_LINES, pd.DataFrame()),
        week_status=build_week_status(weeks, today),
    )
    return run_integrity_checks(context, checks)
