"""
Index reconciliation.

Compares the declared IndexSpec list of a model with the indexes that exist
on its collection and converges the collection: stale or changed indexes are
dropped first, then missing ones are created, one server call each.

A failed call aborts the rest of the batch. Nothing already applied is
rolled back; calling sync again re-diffs and only retries what is left.
Creates that lose a race against a concurrent peer are the exception: they
are collected, the remaining creates still run, and a single
IndexConflictError is raised once the batch is done.

This module is part of MDB_MODELS.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Sequence

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import OperationFailure, PyMongoError

from ..constants import INDEX_CONFLICT_CODES, INDEX_GONE_CODES, PHASE_INDEX_SYNC
from ..exceptions import (
    CONNECTIVITY_ERRORS,
    ConnectivityError,
    IndexConflictError,
    IndexSyncError,
)
from ..observability import get_logger, model_context, record_operation
from .spec import ExistingIndex, IndexSpec

logger = get_logger(__name__)


@dataclass
class IndexDiff:
    """
    Planned changes for one collection.

    Attributes:
        to_drop: Existing non-primary indexes matching no declared spec (existing order)
        to_create: Declared specs matching no existing index (declared order)
        unchanged: Names of declared specs already present as declared
        skipped: Names of unmanaged indexes left in place
    """

    to_drop: list[ExistingIndex] = field(default_factory=list)
    to_create: list[IndexSpec] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_drop and not self.to_create

    def to_dict(self) -> dict[str, Any]:
        return {
            "to_drop": [index.name for index in self.to_drop],
            "to_create": [spec.name for spec in self.to_create],
            "unchanged": list(self.unchanged),
            "skipped": list(self.skipped),
        }


def compute_index_diff(
    existing: Sequence[ExistingIndex],
    declared: Sequence[IndexSpec],
    drop_unmanaged: bool = True,
) -> IndexDiff:
    """
    Compute the drop/create plan for a collection.

    The primary key index is never part of the plan. An index whose name is
    declared but whose keys or options differ is dropped and recreated.

    Args:
        existing: Indexes currently on the collection
        declared: Resolved specs of the model
        drop_unmanaged: Whether indexes with undeclared names are dropped

    Returns:
        IndexDiff
    """
    rest = [index for index in existing if not index.is_primary]
    declared_signatures = {spec.signature() for spec in declared}
    declared_names = {spec.name for spec in declared}
    existing_signatures = {index.signature() for index in rest}

    diff = IndexDiff()
    for index in rest:
        if index.signature() in declared_signatures:
            continue
        if not drop_unmanaged and index.name not in declared_names:
            diff.skipped.append(index.name)
            continue
        diff.to_drop.append(index)

    for spec in declared:
        if spec.signature() in existing_signatures:
            diff.unchanged.append(spec.name)
        else:
            diff.to_create.append(spec)
    return diff


@dataclass
class SyncReport:
    """Outcome of one index sync run."""

    collection_name: str
    created: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def mutations(self) -> int:
        return len(self.created) + len(self.dropped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_name": self.collection_name,
            "created": list(self.created),
            "dropped": list(self.dropped),
            "unchanged": list(self.unchanged),
            "skipped": list(self.skipped),
            "conflicts": list(self.conflicts),
            "mutations": self.mutations,
            "duration_ms": round(self.duration_ms, 2),
        }


class IndexSynchronizer:
    """
    Converges a collection's secondary indexes to a declared set.

    Safe to run from several processes at once: a drop of an index a peer
    already removed counts as done, and a create that collides with a peer's
    different definition raises IndexConflictError.

    Example:
        synchronizer = IndexSynchronizer()
        report = await synchronizer.sync(db["users"], specs)
    """

    def __init__(self, drop_unmanaged: bool = True) -> None:
        """
        Args:
            drop_unmanaged: Drop indexes whose names are not declared (default: True).
                When False they are left in place and reported as skipped.
        """
        self.drop_unmanaged = drop_unmanaged

    async def list_existing(self, collection: AsyncIOMotorCollection) -> list[ExistingIndex]:
        """Fetch the collection's indexes, primary key index included."""
        documents = await collection.list_indexes().to_list(None)
        return [ExistingIndex.from_document(document) for document in documents]

    async def plan(
        self, collection: AsyncIOMotorCollection, declared_specs: Sequence[IndexSpec]
    ) -> IndexDiff:
        """Compute the changes sync would make, without applying them."""
        existing = await self.list_existing(collection)
        return compute_index_diff(existing, declared_specs, self.drop_unmanaged)

    async def sync(
        self, collection: AsyncIOMotorCollection, declared_specs: Sequence[IndexSpec]
    ) -> SyncReport:
        """
        Reconcile the collection's indexes with declared_specs.

        Returns:
            SyncReport listing created, dropped and unchanged index names

        Raises:
            IndexConflictError: One or more creates collided with concurrently created
                indexes; raised after the remaining creates have run
            IndexSyncError: A create, drop or list call failed
            ConnectivityError: Transport failure or timeout
        """
        with model_context(collection_name=collection.name, phase=PHASE_INDEX_SYNC):
            return await self._sync(collection, declared_specs)

    async def _sync(
        self, collection: AsyncIOMotorCollection, declared_specs: Sequence[IndexSpec]
    ) -> SyncReport:
        start_time = time.time()
        collection_name = collection.name
        log_prefix = f"[{collection_name}]"
        report = SyncReport(collection_name=collection_name)
        success = False

        try:
            try:
                existing = await self.list_existing(collection)
            except CONNECTIVITY_ERRORS as e:
                logger.error(f"{log_prefix} ❌ Connection error listing indexes: {e}")
                raise ConnectivityError(
                    f"Connection failure while listing indexes of '{collection_name}': {e}",
                    phase=PHASE_INDEX_SYNC,
                    report=report,
                    context={"collection_name": collection_name},
                ) from e
            except PyMongoError as e:
                logger.error(f"{log_prefix} ❌ Failed to list indexes: {e}")
                raise IndexSyncError(
                    f"Failed to list indexes of '{collection_name}': {e}",
                    operation="list",
                    report=report,
                    context={"collection_name": collection_name},
                ) from e

            diff = compute_index_diff(existing, declared_specs, self.drop_unmanaged)
            report.unchanged = list(diff.unchanged)
            report.skipped = list(diff.skipped)

            if diff.skipped:
                logger.info(f"{log_prefix} Leaving unmanaged index(es) in place: {diff.skipped}")

            if diff.is_empty:
                logger.info(
                    f"{log_prefix} Indexes in sync ({len(diff.unchanged)} declared); nothing to do."
                )
            else:
                logger.info(
                    f"{log_prefix} Index plan: drop {[i.name for i in diff.to_drop]}, "
                    f"create {[s.name for s in diff.to_create]}"
                )
                for index in diff.to_drop:
                    with model_context(index_name=index.name):
                        await self._drop(collection, index, report)
                conflict_errors: list[IndexConflictError] = []
                for spec in diff.to_create:
                    try:
                        with model_context(index_name=spec.name):
                            await self._create(collection, spec, report)
                    except IndexConflictError as e:
                        report.conflicts.append(spec.name)
                        conflict_errors.append(e)
                if conflict_errors:
                    raise IndexConflictError(
                        f"Index create(s) {report.conflicts} on '{collection_name}' conflicted "
                        f"with concurrently created definitions",
                        index_name=report.conflicts[0],
                        operation="create",
                        report=report,
                        context={"collection_name": collection_name, "conflicts": report.conflicts},
                    ) from conflict_errors[0]
                logger.info(
                    f"{log_prefix} ✔️ Index sync complete: created={report.created}, "
                    f"dropped={report.dropped}"
                )
            success = True
            return report
        finally:
            report.duration_ms = (time.time() - start_time) * 1000
            record_operation(
                "indexes.sync", report.duration_ms, success, collection_name=collection_name
            )

    async def _drop(
        self, collection: AsyncIOMotorCollection, index: ExistingIndex, report: SyncReport
    ) -> None:
        collection_name = report.collection_name
        log_prefix = f"[{collection_name}]"
        start_time = time.time()
        success = False
        try:
            await collection.drop_index(index.name)
            logger.info(f"{log_prefix} Dropped index '{index.name}'.")
            success = True
        except CONNECTIVITY_ERRORS as e:
            logger.error(f"{log_prefix} ❌ Connection error dropping index '{index.name}': {e}")
            raise ConnectivityError(
                f"Connection failure while dropping index '{index.name}': {e}",
                phase=PHASE_INDEX_SYNC,
                target=index.name,
                report=report,
                context={"collection_name": collection_name},
            ) from e
        except OperationFailure as e:
            if e.code not in INDEX_GONE_CODES:
                logger.error(f"{log_prefix} ❌ Failed to drop index '{index.name}': {e}")
                raise IndexSyncError(
                    f"Failed to drop index '{index.name}': {e}",
                    index_name=index.name,
                    operation="drop",
                    report=report,
                    context={"collection_name": collection_name, "code": e.code},
                ) from e
            logger.info(f"{log_prefix} Index '{index.name}' already dropped by a peer.")
            success = True
        except PyMongoError as e:
            logger.error(f"{log_prefix} ❌ Failed to drop index '{index.name}': {e}")
            raise IndexSyncError(
                f"Failed to drop index '{index.name}': {e}",
                index_name=index.name,
                operation="drop",
                report=report,
                context={"collection_name": collection_name},
            ) from e
        finally:
            record_operation(
                "indexes.drop",
                (time.time() - start_time) * 1000,
                success,
                collection_name=collection_name,
                index_name=index.name,
            )
        report.dropped.append(index.name)

    async def _create(
        self, collection: AsyncIOMotorCollection, spec: IndexSpec, report: SyncReport
    ) -> None:
        collection_name = report.collection_name
        log_prefix = f"[{collection_name}]"
        keys, kwargs = spec.create_arguments()
        start_time = time.time()
        success = False
        try:
            await collection.create_index(keys, **kwargs)
            logger.info(f"{log_prefix} ✔️ Created index '{spec.name}' on {keys}.")
            success = True
        except CONNECTIVITY_ERRORS as e:
            logger.error(f"{log_prefix} ❌ Connection error creating index '{spec.name}': {e}")
            raise ConnectivityError(
                f"Connection failure while creating index '{spec.name}': {e}",
                phase=PHASE_INDEX_SYNC,
                target=spec.name,
                report=report,
                context={"collection_name": collection_name},
            ) from e
        except OperationFailure as e:
            if e.code in INDEX_CONFLICT_CODES:
                logger.warning(
                    f"{log_prefix} Index '{spec.name}' conflicts with a concurrently "
                    f"created definition: {e}"
                )
                raise IndexConflictError(
                    f"Index '{spec.name}' conflicts with an existing definition: {e}",
                    index_name=spec.name,
                    operation="create",
                    report=report,
                    context={"collection_name": collection_name, "code": e.code},
                ) from e
            logger.error(f"{log_prefix} ❌ Failed to create index '{spec.name}': {e}")
            raise IndexSyncError(
                f"Failed to create index '{spec.name}': {e}",
                index_name=spec.name,
                operation="create",
                report=report,
                context={"collection_name": collection_name, "code": e.code},
            ) from e
        except PyMongoError as e:
            logger.error(f"{log_prefix} ❌ Failed to create index '{spec.name}': {e}")
            raise IndexSyncError(
                f"Failed to create index '{spec.name}': {e}",
                index_name=spec.name,
                operation="create",
                report=report,
                context={"collection_name": collection_name},
            ) from e
        finally:
            record_operation(
                "indexes.create",
                (time.time() - start_time) * 1000,
                success,
                collection_name=collection_name,
                index_name=spec.name,
            )
        report.created.append(spec.name)
