"""
Migration executor.

Applies a model's migrations to its collection in declared order. Migrations
whose gate is closed are recorded as inactive; the first failing migration
halts the run and later ones are not attempted.

This module is part of MDB_MODELS.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..constants import (
    MIGRATION_STATUS_APPLIED,
    MIGRATION_STATUS_FAILED,
    MIGRATION_STATUS_INACTIVE,
    PHASE_MIGRATION,
)
from ..exceptions import CONNECTIVITY_ERRORS, ConnectivityError, MigrationApplyError
from ..observability import get_logger, model_context, record_operation
from .registry import MigrationRegistry

logger = get_logger(__name__)


@dataclass
class MigrationOutcome:
    """Result of one migration within a run."""

    name: str
    status: str
    matched_count: int = 0
    modified_count: int = 0
    error: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "matched_count": self.matched_count,
            "modified_count": self.modified_count,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class MigrationReport:
    """Outcomes of a migration run, in execution order."""

    collection_name: str
    outcomes: list[MigrationOutcome] = field(default_factory=list)

    def _names(self, status: str) -> list[str]:
        return [o.name for o in self.outcomes if o.status == status]

    @property
    def applied(self) -> list[str]:
        return self._names(MIGRATION_STATUS_APPLIED)

    @property
    def inactive(self) -> list[str]:
        return self._names(MIGRATION_STATUS_INACTIVE)

    @property
    def failed(self) -> list[str]:
        return self._names(MIGRATION_STATUS_FAILED)

    @property
    def total_modified(self) -> int:
        return sum(o.modified_count for o in self.outcomes)

    def get(self, name: str) -> MigrationOutcome | None:
        return next((o for o in self.outcomes if o.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_name": self.collection_name,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "applied": self.applied,
            "inactive": self.inactive,
            "failed": self.failed,
            "total_modified": self.total_modified,
        }


class MigrationExecutor:
    """
    Runs migrations sequentially against a collection.

    Example:
        executor = MigrationExecutor()
        report = await executor.migrate(db["users"], registry)
    """

    async def migrate(
        self,
        collection: AsyncIOMotorCollection,
        registry: MigrationRegistry | Iterable[Any],
    ) -> MigrationReport:
        """
        Apply every applicable migration in order.

        Returns:
            MigrationReport with one outcome per migration

        Raises:
            MigrationApplyError: A migration's update failed; later ones were not attempted
            ConnectivityError: Transport failure or timeout during a migration
        """
        if not isinstance(registry, MigrationRegistry):
            registry = MigrationRegistry(registry, collection_name=collection.name)

        collection_name = collection.name
        log_prefix = f"[{collection_name}]"
        report = MigrationReport(collection_name=collection_name)

        with model_context(collection_name=collection_name, phase=PHASE_MIGRATION):
            for migration in registry:
                if not migration.is_applicable():
                    logger.info(
                        f"{log_prefix} Migration '{migration.name}' is inactive; skipping."
                    )
                    report.outcomes.append(
                        MigrationOutcome(name=migration.name, status=MIGRATION_STATUS_INACTIVE)
                    )
                    continue
                with model_context(migration_name=migration.name):
                    await self._apply(collection, migration, registry, report)

            logger.info(
                f"{log_prefix} ✔️ Migrations complete: applied={report.applied}, "
                f"inactive={report.inactive}, modified={report.total_modified}"
            )
        return report

    async def _apply(
        self,
        collection: AsyncIOMotorCollection,
        migration: Any,
        registry: MigrationRegistry,
        report: MigrationReport,
    ) -> None:
        collection_name = report.collection_name
        log_prefix = f"[{collection_name}]"
        start_time = time.time()
        try:
            result = await migration.apply(collection)
        except PyMongoError as e:
            duration_ms = (time.time() - start_time) * 1000
            record_operation(
                "migrations.apply",
                duration_ms,
                False,
                collection_name=collection_name,
                migration_name=migration.name,
            )
            report.outcomes.append(
                MigrationOutcome(
                    name=migration.name,
                    status=MIGRATION_STATUS_FAILED,
                    error=str(e),
                    duration_ms=duration_ms,
                )
            )
            skipped = registry.names[len(report.outcomes) :]
            logger.error(
                f"{log_prefix} ❌ Migration '{migration.name}' failed: {e}. "
                f"Not attempted: {skipped}"
            )
            if isinstance(e, CONNECTIVITY_ERRORS):
                raise ConnectivityError(
                    f"Connection failure while applying migration '{migration.name}': {e}",
                    phase=PHASE_MIGRATION,
                    target=migration.name,
                    report=report,
                    context={"collection_name": collection_name},
                ) from e
            raise MigrationApplyError(
                f"Migration '{migration.name}' failed: {e}",
                migration_name=migration.name,
                report=report,
                context={"collection_name": collection_name},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        record_operation(
            "migrations.apply",
            duration_ms,
            True,
            collection_name=collection_name,
            migration_name=migration.name,
        )
        report.outcomes.append(
            MigrationOutcome(
                name=migration.name,
                status=MIGRATION_STATUS_APPLIED,
                matched_count=result.matched_count,
                modified_count=result.modified_count,
                duration_ms=duration_ms,
            )
        )
