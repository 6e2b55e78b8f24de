"""
League power rankings and standings.

Scores fantasy head-to-head matchups, maintains week-by-week Elo and
performance ratings, blends them into a composite power ranking and builds
tie-broken season standings on top of a stat repository.
"""

from .config import RankingConfig, load_config
from .errors import (
    RankingError, ConfigurationError, SchemaValidationError, PersistenceWriteFailure
)

__version__ = "0.1.0"

__all__ = [
    'RankingConfig',
    'load_config',
    'RankingError',
    'ConfigurationError',
    'SchemaValidationError',
    'PersistenceWriteFailure'
]
