"""
MDB_MODELS - MongoDB Models

Declarative model layer for MongoDB on Motor: index reconciliation and
interval-gated data migrations run at service boot, safe to execute from
many processes at once.
"""

# Core
from .config import EngineConfig
from .core import (
    BootReport,
    BootSequencer,
    Model,
    ModelCursor,
    ModelDescriptor,
    ModelEngine,
    collection_name_for,
)
# Errors
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DescriptorError,
    DocumentError,
    IndexConflictError,
    IndexSyncError,
    InitializationError,
    MigrationApplyError,
    MongoModelError,
)
# Index management
from .indexes import IndexSpec, IndexSynchronizer, SyncReport, resolve_index_specs
# Migrations
from .migrations import (
    ApplyResult,
    IntervalMigration,
    Migration,
    MigrationExecutor,
    MigrationRegistry,
    MigrationReport,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "ModelEngine",
    "ModelDescriptor",
    "Model",
    "ModelCursor",
    "BootSequencer",
    "BootReport",
    "EngineConfig",
    "collection_name_for",
    # Indexes
    "IndexSpec",
    "IndexSynchronizer",
    "SyncReport",
    "resolve_index_specs",
    # Migrations
    "Migration",
    "ApplyResult",
    "IntervalMigration",
    "MigrationRegistry",
    "MigrationExecutor",
    "MigrationReport",
    # Errors
    "MongoModelError",
    "DescriptorError",
    "DocumentError",
    "IndexSyncError",
    "IndexConflictError",
    "MigrationApplyError",
    "ConnectivityError",
    "InitializationError",
    "ConfigurationError",
]
