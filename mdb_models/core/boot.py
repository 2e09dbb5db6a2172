"""
Boot sequencing.

Brings a model's collection up to date before the service accepts traffic:
indexes are reconciled first, then migrations run. Every step is idempotent,
so any number of processes may run the sequence at the same time and a
failed run can simply be repeated.

This module is part of MDB_MODELS.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..exceptions import IndexConflictError
from ..indexes import IndexSynchronizer, SyncReport
from ..migrations import MigrationExecutor, MigrationReport
from ..observability import get_logger, model_context, record_operation
from .model import ModelDescriptor

logger = logging.getLogger(__name__)
contextual_logger = get_logger(__name__)


@dataclass
class BootReport:
    """
    Outcome of booting one model.

    Attributes:
        collection_name: Model collection
        index_report: SyncReport, or None when the index phase did not run
        migration_report: MigrationReport, or None when the migration phase did not run
        index_conflict: The IndexConflictError tolerated during sync, if any
        duration_ms: Total boot duration
    """

    collection_name: str
    index_report: SyncReport | None = None
    migration_report: MigrationReport | None = None
    index_conflict: IndexConflictError | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_name": self.collection_name,
            "indexes": self.index_report.to_dict() if self.index_report else None,
            "migrations": self.migration_report.to_dict() if self.migration_report else None,
            "index_conflict": str(self.index_conflict) if self.index_conflict else None,
            "duration_ms": round(self.duration_ms, 2),
        }


class BootSequencer:
    """
    Runs index sync and migrations for models against one database.

    Example:
        sequencer = BootSequencer(db)
        report = await sequencer.initialize(users)
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        synchronizer: IndexSynchronizer | None = None,
        executor: MigrationExecutor | None = None,
    ) -> None:
        self.database = database
        self.synchronizer = synchronizer or IndexSynchronizer()
        self.executor = executor or MigrationExecutor()

    async def sync(self, model: ModelDescriptor) -> SyncReport:
        """Reconcile the model's indexes. Errors propagate unchanged."""
        collection = model.collection(self.database)
        return await self.synchronizer.sync(collection, model.index_specs)

    async def migrate(self, model: ModelDescriptor) -> MigrationReport:
        """Apply the model's migrations. Errors propagate unchanged."""
        collection = model.collection(self.database)
        return await self.executor.migrate(collection, model.migrations)

    async def initialize(
        self,
        model: ModelDescriptor,
        sync_indexes: bool = True,
        run_migrations: bool = True,
    ) -> BootReport:
        """
        Sync indexes, then run migrations.

        Migrations start only after the index phase has finished. If the index
        phase fails, migrations are skipped and the error propagates; an
        IndexConflictError (a peer racing us) is logged and migrations still run.

        Raises:
            IndexSyncError, MigrationApplyError, ConnectivityError
        """
        start_time = time.time()
        collection_name = model.collection_name
        log_prefix = f"[{collection_name}]"
        report = BootReport(collection_name=collection_name)
        success = False

        with model_context(collection_name=collection_name):
            try:
                if sync_indexes:
                    try:
                        report.index_report = await self.sync(model)
                    except IndexConflictError as e:
                        contextual_logger.warning(
                            f"{log_prefix} Index conflict with a concurrent peer; continuing "
                            f"with migrations: {e}",
                            extra={"index_name": e.index_name},
                        )
                        report.index_conflict = e
                        report.index_report = e.report
                else:
                    logger.info(f"{log_prefix} Index sync disabled; skipping.")

                if run_migrations:
                    report.migration_report = await self.migrate(model)
                else:
                    logger.info(f"{log_prefix} Migrations disabled; skipping.")

                success = True
            finally:
                report.duration_ms = (time.time() - start_time) * 1000
                record_operation(
                    "model.initialize",
                    report.duration_ms,
                    success,
                    collection_name=collection_name,
                )

            contextual_logger.info(
                f"{log_prefix} ✔️ Model initialized",
                extra={"duration_ms": round(report.duration_ms, 2)},
            )
        return report

    async def initialize_all(
        self,
        models: Iterable[ModelDescriptor],
        sync_indexes: bool = True,
        run_migrations: bool = True,
    ) -> list[BootReport]:
        """
        Initialize models one after another, stopping at the first failure.
        """
        reports = []
        for model in models:
            reports.append(
                await self.initialize(
                    model, sync_indexes=sync_indexes, run_migrations=run_migrations
                )
            )
        return reports
