"""
Post-run integrity checks for ranked seasons.
"""

from .integrity_checks import (
    CheckContext, CheckResult, run_integrity_checks, run_for_season, summarize_results, CHECKS
)

__all__ = [
    'CheckContext',
    'CheckResult',
    'run_integrity_checks',
    'run_for_season',
    'summarize_results',
    'CHECKS'
]
