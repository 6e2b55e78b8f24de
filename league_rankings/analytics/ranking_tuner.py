#!/usr/bin/env python3
"""
Ranking Parameter Tuning Harness

Runs the ranking engine in dry-run mode under alternative parameter sets and
compares the resulting power ranks against a baseline to evaluate ranking
stability and parameter sensitivity.
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import argparse
from scipy.stats import spearmanr, kendalltau

from league_rankings.analytics.ranking_engine import RankingEngine
from league_rankings.config import RankingConfig, load_config, load_yaml
from league_rankings.io.repository import TEAM_WEEK_STAT_LINES, CsvRepository, StatRepository
from league_rankings.io.safe_write import safe_write_csv, safe_write_json
from league_rankings.utils.logger import get_logger

logger = logging.getLogger(__name__)

DEFAULT_SCENARIOS_PATH = Path(__file__).parent.parent / "tuning_scenarios.yaml"

EMPTY_METRICS = {
    'spearman_correlation': 0.0,
    'kendall_correlation': 0.0,
    'top3_overlap': 0.0,
    'top5_overlap': 0.0,
    'top10_overlap': 0.0,
    'median_rank_delta': 0.0,
    'p90_rank_delta': 0.0,
    'max_rank_delta': 0.0,
    'teams_compared': 0
}


def _aligned(df_base: pd.DataFrame, df_test: pd.DataFrame, key: str, rank_col: str) -> pd.DataFrame:
    return pd.merge(
        df_base[[key, rank_col]],
        df_test[[key, rank_col]],
        on=key,
        suffixes=('_base', '_test')
    )


def compare_rankings(df_base: pd.DataFrame, df_test: pd.DataFrame,
                     key: str = 'team_id', rank_col: str = 'power_rk') -> Dict[str, float]:
    """
    Compare two ranking DataFrames and compute stability metrics.

    Args:
        df_base: Baseline rankings DataFrame
        df_test: Test rankings DataFrame
        key: Column identifying a team in both frames
        rank_col: Rank column to compare

    Returns:
        Dictionary of comparison metrics
    """
    if df_base.empty or df_test.empty:
        return dict(EMPTY_METRICS)

    merged = _aligned(df_base, df_test, key, rank_col)
    if merged.empty:
        return dict(EMPTY_METRICS)

    base = merged[f'{rank_col}_base'].astype(float)
    test = merged[f'{rank_col}_test'].astype(float)

    spearman_corr, _ = spearmanr(base, test)
    kendall_corr, _ = kendalltau(base, test)

    def top_k_overlap(k):
        k = min(k, len(merged))
        base_top_k = set(merged.loc[base.nsmallest(k).index, key])
        test_top_k = set(merged.loc[test.nsmallest(k).index, key])
        return len(base_top_k & test_top_k) / k

    rank_deltas = np.abs(test - base)

    return {
        'spearman_correlation': float(spearman_corr),
        'kendall_correlation': float(kendall_corr),
        'top3_overlap': top_k_overlap(3),
        'top5_overlap': top_k_overlap(5),
        'top10_overlap': top_k_overlap(10),
        'median_rank_delta': float(rank_deltas.median()),
        'p90_rank_delta': float(rank_deltas.quantile(0.9)),
        'max_rank_delta': float(rank_deltas.max()),
        'teams_compared': len(merged)
    }


def final_power_ranks(repository: StatRepository, season_id: Any, config: RankingConfig) -> pd.DataFrame:
    """
    Dry-run one configuration and return each team's last computed power rank.

    Returns:
        DataFrame with team_id, power_rk, power_rating and power_composite
    """
    engine = RankingEngine(repository, config.with_overrides({'DRY_RUN': True}))
    result = engine.run(season_id)
    weeks = result.frames.get(TEAM_WEEK_STAT_LINES)
    if weeks is None or weeks.empty:
        return pd.DataFrame(columns=['team_id', 'power_rk', 'power_rating', 'power_composite'])

    # Rows are emitted in week order; the last row per team is the final snapshot
    final = weeks.drop_duplicates('team_id', keep='last')
    return final[['team_id', 'power_rk', 'power_rating', 'power_composite']].reset_index(drop=True)


def run_tuning(season_id: Any, repository: StatRepository, base_config: RankingConfig,
               override_sets: Dict[str, Dict[str, Any]],
               output_dir: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Compare every override set against the baseline configuration.

    Args:
        season_id: Season to rank
        repository: Stat repository (never written to)
        base_config: Baseline configuration
        override_sets: Scenario name -> UPPER_CASE overrides; a 'baseline'
            entry, when present, is applied to the baseline run
        output_dir: When set, each scenario's report is saved here

    Returns:
        Scenario name -> metrics. A scenario that fails records its error
        instead of metrics. Empty when the baseline ranks no teams.
    """
    baseline_config = base_config.with_overrides(override_sets.get('baseline') or {})
    logger.info("Running baseline ranking...")
    df_baseline = final_power_ranks(repository, season_id, baseline_config)
    logger.info(f"Baseline ranking complete: {len(df_baseline)} teams")
    if df_baseline.empty:
        logger.error("Baseline ranking produced no results")
        return {}

    results: Dict[str, Dict[str, Any]] = {}
    for scenario_name, overrides in override_sets.items():
        if scenario_name == 'baseline':
            continue

        logger.info(f"Running scenario: {scenario_name}")
        try:
            df_scenario = final_power_ranks(repository, season_id, base_config.with_overrides(overrides or {}))
        except Exception as e:
            logger.error(f"Scenario {scenario_name} failed: {e}")
            results[scenario_name] = {'error': str(e)}
            continue

        metrics = compare_rankings(df_baseline, df_scenario)
        results[scenario_name] = metrics
        if output_dir is not None:
            save_report(scenario_name, metrics, df_baseline, df_scenario, output_dir)

        logger.info(f"Scenario {scenario_name} complete:")
        logger.info(f"  Spearman correlation: {metrics['spearman_correlation']:.3f}")
        logger.info(f"  Top-3 overlap: {metrics['top3_overlap']:.3f}")
        logger.info(f"  Median rank delta: {metrics['median_rank_delta']:.1f}")

    return results


def save_report(name: str, metrics: Dict[str, Any], df_base: pd.DataFrame,
                df_test: pd.DataFrame, output_dir: Path) -> None:
    """
    Save a scenario's metrics and per-team rank deltas.

    Args:
        name: Scenario name
        metrics: Comparison metrics
        df_base: Baseline final ranks
        df_test: Scenario final ranks
        output_dir: Output directory
    """
    scenario_dir = Path(output_dir) / name
    safe_write_json(metrics, scenario_dir / "metrics.json")

    if not df_base.empty and not df_test.empty:
        merged = pd.merge(df_base, df_test, on='team_id', suffixes=('_base', '_test'))
        merged['rank_delta'] = merged['power_rk_test'] - merged['power_rk_base']
        merged['abs_rank_delta'] = np.abs(merged['rank_delta'])
        merged['rating_delta'] = merged['power_rating_test'] - merged['power_rating_base']
        safe_write_csv(merged, scenario_dir / "rank_deltas.csv")
        logger.info(f"Saved {len(merged)} team comparisons for {name}")

    logger.info(f"Saved tuning report for {name} to {scenario_dir}")


def main():
    """CLI entry point for the ranking tuner."""
    parser = argparse.ArgumentParser(description="League power rankings parameter tuner")
    parser.add_argument("--season", type=str, required=True,
                        help="Season id to rank")
    parser.add_argument("--data-dir", type=str, default="data",
                        help="Directory holding one CSV per table")
    parser.add_argument("--output-root", type=str, default="data/tuning",
                        help="Output directory for tuning results")
    parser.add_argument("--scenarios", type=str, default=str(DEFAULT_SCENARIOS_PATH),
                        help="Tuning scenarios configuration file")
    parser.add_argument("--config", type=str, default=None,
                        help="Base configuration file")

    args = parser.parse_args()

    get_logger("league_rankings")

    output_dir = Path(args.output_root)
    repository = CsvRepository(args.data_dir)

    try:
        base_config = load_config(args.config)
        scenarios = load_yaml(args.scenarios)

        scenario_results = run_tuning(args.season, repository, base_config, scenarios, output_dir)
        if not scenario_results:
            return

        summary = {
            'season_id': args.season,
            'scenarios_run': len(scenario_results),
            'scenario_results': scenario_results
        }
        summary_file = output_dir / "tuning_summary.json"
        safe_write_json(summary, summary_file)
        logger.info(f"Tuning complete! Summary saved to {summary_file}")

        print("\n" + "=" * 70)
        print("TUNING RESULTS SUMMARY")
        print("=" * 70)
        print(f"{'Scenario':<24} {'Spearman':<10} {'Kendall':<10} {'Top-3':<10} {'Med delta':<10}")
        print("-" * 70)
        for name, metrics in scenario_results.items():
            if 'error' in metrics:
                print(f"{name:<24} failed: {metrics['error']}")
                continue
            print(f"{name:<24} {metrics['spearman_correlation']:<10.3f} "
                  f"{metrics['kendall_correlation']:<10.3f} "
                  f"{metrics['top3_overlap']:<10.3f} "
                  f"{metrics['median_rank_delta']:<10.1f}")
        print("=" * 70)

    except Exception as e:
        logger.error(f"Tuning failed: {e}")
        raise


if __name__ == "__main__":
    main()
