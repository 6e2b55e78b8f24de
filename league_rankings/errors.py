#!/usr/bin/env python3
"""
Exception types raised by the ranking and standings pipeline.

Missing data is not an exception here: an empty season is reported through
``RunResult.no_data`` and per-team gaps are counted in
``RunResult.partial_data_gaps``.
"""


class RankingError(Exception):
    """Base class for all league ranking errors."""
    pass


class ConfigurationError(RankingError):
    """A required collaborator or configuration value is missing or invalid."""
    pass


class SchemaValidationError(RankingError):
    """An input table failed its pandera schema."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


class PersistenceWriteFailure(RankingError):
    """
    An upsert against the stat repository failed.

    Batches committed earlier in the same run stay applied.
    """

    def __init__(self, table: str, cause: Exception):
        self.table = table
        self.cause = cause
        super().__init__(f"Failed to upsert {table}: {cause}")
