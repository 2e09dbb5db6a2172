"""
Migration module for MDB_MODELS.

Provides the migration capability, interval-gated migrations, an ordered
registry and the sequential executor.
"""

from .base import ApplyResult, Migration, is_migration
from .executor import MigrationExecutor, MigrationOutcome, MigrationReport
from .interval import IntervalMigration, utc_now
from .registry import MigrationRegistry

__all__ = [
    "ApplyResult",
    "Migration",
    "is_migration",
    "IntervalMigration",
    "utc_now",
    "MigrationRegistry",
    "MigrationExecutor",
    "MigrationOutcome",
    "MigrationReport",
]
