#!/usr/bin/env python3
"""
End-to-end tests for the season ranking pipeline
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from league_rankings.analytics.ranking_engine import RankingEngine, order_weeks, run_power_rankings
from league_rankings.analytics.standings import team_points
from conftest import stat_line
from league_rankings.config import RankingConfig
from league_rankings.errors import ConfigurationError, PersistenceWriteFailure
from league_rankings.io.repository import (
    InMemoryRepository, MATCHUPS, PLAYER_WEEK_STAT_LINES, TEAMS, TEAM_SEASON_STANDINGS,
    TEAM_WEEK_STAT_LINES, WEEKS
)


def final_week(frame, week_id='w2'):
    return frame[frame['week_id'] == week_id].set_index('team_id')


class TestRankingEngineRun:
    """Test cases for a full season run against the league fixture"""

    def test_scores_and_outcomes_written(self, league_repository, ranking_config):
        """Completed weeks get category scores and outcome flags"""
        RankingEngine(league_repository, ranking_config).run('2025')

        matchups = league_repository.tables[MATCHUPS].set_index('id')
        assert float(matchups.loc['m1', 'home_score']) == 10.0
        assert float(matchups.loc['m1', 'away_score']) == 0.0
        assert matchups.loc['m1', 'home_win'] == True  # noqa: E712
        assert matchups.loc['m1', 'is_complete'] == True  # noqa: E712
        # Week 3 has not started
        assert pd.isna(matchups.loc['m5', 'home_score'])

    def test_elo_and_ranks(self, league_repository, ranking_config):
        """Two 10-0 sweeps between evenly rated teams move 15 points each"""
        result = RankingEngine(league_repository, ranking_config).run('2025')

        assert result.weeks_processed == 2
        week = final_week(result.frames[TEAM_WEEK_STAT_LINES])
        assert week.loc['1', 'power_elo'] == pytest.approx(1530.0)
        assert week.loc['2', 'power_elo'] == pytest.approx(1500.0)
        assert week.loc['3', 'power_elo'] == pytest.approx(1500.0)
        assert week.loc['4', 'power_elo'] == pytest.approx(1470.0)
        assert week['power_elo'].sum() == pytest.approx(4 * 1500.0)
        assert week.loc['1', 'power_rk'] == 1
        assert week.loc['4', 'power_rk'] == 4
        assert week.loc['1', 'power_rating'] == pytest.approx(100.0)
        assert week.loc['4', 'power_rating'] == pytest.approx(0.0)

    def test_week_snapshots_persisted(self, league_repository, ranking_config):
        RankingEngine(league_repository, ranking_config).run('2025')

        lines = league_repository.tables[TEAM_WEEK_STAT_LINES]
        assert len(lines) == 8
        assert lines['power_rk'].notna().all()
        # Category columns survive the upsert
        assert lines['G'].notna().all()

    def test_standings(self, league_repository, ranking_config):
        """Records, streaks and tie-broken ranks"""
        result = RankingEngine(league_repository, ranking_config).run('2025')

        standings = result.frames[TEAM_SEASON_STANDINGS].set_index('team_id')
        assert standings.loc['1', 'team_w'] == 2
        assert standings.loc['1', 'streak'] == '2W'
        assert standings.loc['4', 'team_l'] == 2
        assert standings.loc['4', 'streak'] == '2L'
        # Teams 2 and 3 are level on record; team 2's power rating is higher
        assert list(standings.sort_values('overall_rk').index) == ['1', '2', '3', '4']
        assert standings.loc['1', 'conference_rk'] == 1
        assert standings.loc['3', 'conference_rk'] == 1
        assert standings['wildcard_rk'].isna().all()
        assert len(league_repository.tables[TEAM_SEASON_STANDINGS]) == 4

    def test_matchup_ranks(self, league_repository, ranking_config):
        """Matchups carry each side's power rank for their week"""
        RankingEngine(league_repository, ranking_config).run('2025')

        matchups = league_repository.tables[MATCHUPS].set_index('id')
        assert int(matchups.loc['m3', 'home_rank']) == 1
        assert pd.isna(matchups.loc['m5', 'home_rank'])

    def test_run_is_idempotent(self, league_repository, ranking_config):
        """A second run over unchanged input changes nothing"""
        engine = RankingEngine(league_repository, ranking_config)
        first = engine.run('2025')
        second = engine.run('2025')

        assert first.counts['team_season_standings']['created'] == 4
        for label, counts in second.counts.items():
            assert counts['created'] == 0, label
            assert counts['updated'] == 0, label

    def test_dry_run_writes_nothing(self, league_tables, ranking_config):
        """Dry runs compute everything and persist nothing"""
        repository = InMemoryRepository(league_tables)
        config = ranking_config.with_overrides({'DRY_RUN': True})

        result = RankingEngine(repository, config).run('2025')

        assert result.dry_run
        assert result.counts['team_week_power'] == {'rows': 8}
        assert TEAM_SEASON_STANDINGS not in repository.tables
        assert repository.tables[MATCHUPS]['home_score'].isna().all()
        assert len(result.frames[TEAM_SEASON_STANDINGS]) == 4

    def test_no_data(self, ranking_config):
        """A season without weeks or teams reports no data"""
        result = RankingEngine(InMemoryRepository(), ranking_config).run('2030')

        assert result.no_data
        assert result.counts == {}

    def test_missing_stat_line_is_a_gap(self, league_tables, ranking_config):
        """A missing stat line skips the matchup and is counted, not raised"""
        lines = league_tables[TEAM_WEEK_STAT_LINES]
        league_tables[TEAM_WEEK_STAT_LINES] = lines[~((lines['team_id'] == '4') & (lines['week_id'] == 'w2'))]
        repository = InMemoryRepository(league_tables)
        engine = RankingEngine(repository, ranking_config)

        result = engine.run('2025')

        assert result.partial_data_gaps >= 2
        assert any('m4' in w for w in result.warnings)
        week = final_week(result.frames[TEAM_WEEK_STAT_LINES])
        assert week.loc['4', 'power_elo_delta'] == 0.0
        assert week.loc['2', 'power_elo_delta'] == 0.0

        # The snapshot for team 4 stays in memory but never becomes a stat line
        stored = repository.tables[TEAM_WEEK_STAT_LINES]
        assert not ((stored['team_id'] == '4') & (stored['week_id'] == 'w2')).any()

        second = engine.run('2025')

        assert second.partial_data_gaps == result.partial_data_gaps
        for label, counts in second.counts.items():
            assert counts['created'] == 0, label
            assert counts['updated'] == 0, label
        m4 = repository.tables[MATCHUPS].set_index('id').loc['m4']
        assert pd.isna(m4['home_score'])
        assert pd.isna(m4['home_win'])

    def test_partial_data_rerun_is_idempotent(self, league_tables, ranking_config):
        """A playing team without a line and an idle team settle after one run"""
        lines = league_tables[TEAM_WEEK_STAT_LINES]
        league_tables[TEAM_WEEK_STAT_LINES] = lines[~((lines['team_id'] == '3') & (lines['week_id'] == 'w1'))]
        league_tables[TEAMS] = pd.concat([
            league_tables[TEAMS],
            pd.DataFrame([{'id': '5', 'season_id': '2025', 'name': 'Embers', 'conference_id': 'B'}]),
        ], ignore_index=True)
        repository = InMemoryRepository(league_tables)
        engine = RankingEngine(repository, ranking_config)

        first = engine.run('2025')
        second = engine.run('2025')

        week = final_week(first.frames[TEAM_WEEK_STAT_LINES])
        assert week.loc['5', 'power_elo'] == pytest.approx(1500.0)
        assert (repository.tables[TEAM_WEEK_STAT_LINES]['team_id'] != '5').all()
        assert len(repository.tables[TEAM_WEEK_STAT_LINES]) == 7
        assert second.partial_data_gaps == first.partial_data_gaps
        for label, counts in second.counts.items():
            assert counts['created'] == 0, label
            assert counts['updated'] == 0, label
        assert pd.isna(repository.tables[MATCHUPS].set_index('id').loc['m2', 'home_score'])

    def test_single_week_clean_win(self, ranking_config):
        """Team A takes seven of ten categories from team B in the only week"""
        away_line = stat_line('B', 'w1', 1)
        away_line.update({'SOG': 99.0, 'HIT': 99.0, 'BLK': 99.0})
        repository = InMemoryRepository({
            TEAMS: pd.DataFrame({'id': ['A', 'B'], 'season_id': ['2025', '2025']}),
            WEEKS: pd.DataFrame({
                'id': ['w1'], 'season_id': ['2025'], 'week_type': ['RS'],
                'start_date': ['2025-10-06'], 'end_date': ['2025-10-12'], 'sort_order': [1],
            }),
            MATCHUPS: pd.DataFrame({
                'id': ['m1'], 'season_id': ['2025'], 'week_id': ['w1'],
                'home_team_id': ['A'], 'away_team_id': ['B'],
            }),
            TEAM_WEEK_STAT_LINES: pd.DataFrame([stat_line('A', 'w1', 2), away_line]),
            PLAYER_WEEK_STAT_LINES: pd.DataFrame([
                {'team_id': tid, 'week_id': 'w1', 'season_id': '2025', 'pos_group': 'G', 'GS': 2.0}
                for tid in ('A', 'B')
            ]),
        })

        result = RankingEngine(repository, ranking_config).run('2025')

        m1 = repository.tables[MATCHUPS].set_index('id').loc['m1']
        assert (float(m1['home_score']), float(m1['away_score'])) == (7.0, 3.0)
        standings = result.frames[TEAM_SEASON_STANDINGS].set_index('team_id')
        assert standings.loc['A', 'team_w'] == 1
        assert team_points(standings.loc['A', 'team_w'], standings.loc['A', 'team_hw'],
                           standings.loc['A', 'team_hl']) == 3
        week = final_week(result.frames[TEAM_WEEK_STAT_LINES], 'w1')
        # K = 20 * (1 + 0.5 * 4 / 10), actual = 0.75 * 0.7 + 0.25 * 1.0
        assert week.loc['A', 'power_elo_delta'] == pytest.approx(6.6)
        assert week.loc['B', 'power_elo_delta'] == pytest.approx(-6.6)
        assert week.loc['A', 'power_rk'] == 1

    def test_season_type_filter(self, league_repository, ranking_config):
        """A playoff-only run over a regular season processes nothing"""
        config = ranking_config.with_overrides({'SEASON_TYPE': 'PO'})

        result = RankingEngine(league_repository, config).run('2025')

        assert result.weeks_processed == 0
        assert result.frames[TEAM_SEASON_STANDINGS].empty

    def test_run_power_rankings_wrapper(self, league_repository, ranking_config):
        result = run_power_rankings('2025', league_repository, ranking_config)

        assert result.season_id == '2025'
        assert result.summary()['weeks_processed'] == 2


class FailingStandingsRepository(InMemoryRepository):
    """Repository whose standings table cannot be written."""

    def write_table(self, table, df):
        if table == TEAM_SEASON_STANDINGS:
            raise IOError("disk full")
        super().write_table(table, df)


class TestRankingEngineErrors:
    """Test cases for configuration and persistence errors"""

    def test_missing_repository(self, ranking_config):
        with pytest.raises(ConfigurationError):
            RankingEngine(None, ranking_config)

    def test_missing_config(self, league_repository):
        with pytest.raises(ConfigurationError):
            RankingEngine(league_repository, None)

    def test_invalid_config(self, league_repository):
        with pytest.raises(ConfigurationError):
            RankingEngine(league_repository, RankingConfig(ewma_alpha=0.0))

    def test_missing_season_id(self, league_repository, ranking_config):
        with pytest.raises(ConfigurationError):
            RankingEngine(league_repository, ranking_config).run('')

    def test_persistence_failure_keeps_earlier_batches(self, league_tables, ranking_config):
        """A failed upsert raises and leaves earlier batches applied"""
        repository = FailingStandingsRepository(league_tables)

        with pytest.raises(PersistenceWriteFailure) as excinfo:
            RankingEngine(repository, ranking_config).run('2025')

        assert excinfo.value.table == TEAM_SEASON_STANDINGS
        matchups = repository.tables[MATCHUPS].set_index('id')
        assert float(matchups.loc['m1', 'home_score']) == 10.0
        assert 'power_rk' in repository.tables[TEAM_WEEK_STAT_LINES].columns


class TestWeekOrdering:
    """Test cases for chronological week order"""

    def test_sort_order_then_date_then_id(self):
        weeks = pd.DataFrame({
            'id': ['w10', 'w2', 'w1', 'w3'],
            'sort_order': [None, 2.0, 1.0, None],
            'start_date': [pd.Timestamp('2025-10-20'), pd.Timestamp('2025-10-13'),
                           pd.Timestamp('2025-10-06'), pd.Timestamp('2025-10-20')],
        })

        assert [w['id'] for w in order_weeks(weeks)] == ['w1', 'w2', 'w3', 'w10']
