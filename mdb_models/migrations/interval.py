"""
Interval-gated migrations.

An IntervalMigration is active until its threshold passes. While active it
applies one ``update_many`` with ``$set`` and/or ``$unset`` to every document
matching its filter; the filter should exclude already-migrated documents so
repeated runs are no-ops.

This module is part of MDB_MODELS.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.write_concern import WriteConcern

from ..exceptions import DescriptorError
from .base import ApplyResult

logger = logging.getLogger(__name__)

# Used when the collection carries no explicit write concern
MIGRATION_WRITE_CONCERN = WriteConcern(w=1, j=True)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class IntervalMigration:
    """
    A migration that runs until ``threshold`` has passed.

    Attributes:
        name: Unique name of the migration within its model
        threshold: Point in time after which the migration is no longer applied
        filter: Documents to update; should exclude already migrated documents
        set: Fields to set (``$set``)
        unset: Fields to remove (``$unset``), as a mapping or a list of names
        clock: Returns the current time; injectable for tests

    Example:
        IntervalMigration(
            name="add-status",
            threshold=datetime(2027, 1, 1, tzinfo=timezone.utc),
            filter={"status": {"$exists": False}},
            set={"status": "active"},
        )
    """

    name: str
    threshold: datetime
    filter: Mapping[str, Any]
    set: Mapping[str, Any] | None = None
    unset: Mapping[str, Any] | Sequence[str] | None = None
    clock: Callable[[], datetime] = field(default=utc_now, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise DescriptorError("Migration name must be a non-empty string")
        if not isinstance(self.threshold, datetime):
            raise DescriptorError(
                f"Migration '{self.name}' threshold must be a datetime, "
                f"got {type(self.threshold).__name__}",
                declaration=self.name,
            )
        if not isinstance(self.filter, Mapping):
            raise DescriptorError(
                f"Migration '{self.name}' filter must be a mapping", declaration=self.name
            )

        set_fields = self._normalize_set(self.set)
        unset_fields = self._normalize_unset(self.unset)
        if not set_fields and not unset_fields:
            raise DescriptorError(
                f"Migration '{self.name}' must declare at least one of 'set' or 'unset'",
                declaration=self.name,
            )
        overlap = sorted(set_fields.keys() & unset_fields.keys()) if set_fields and unset_fields else []
        if overlap:
            raise DescriptorError(
                f"Migration '{self.name}' both sets and unsets {overlap}",
                declaration=self.name,
            )

        object.__setattr__(self, "threshold", _as_utc(self.threshold))
        object.__setattr__(self, "filter", dict(self.filter))
        object.__setattr__(self, "set", set_fields)
        object.__setattr__(self, "unset", unset_fields)

    def _normalize_set(self, value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise DescriptorError(
                f"Migration '{self.name}' 'set' must be a mapping", declaration=self.name
            )
        return dict(value) or None

    def _normalize_unset(self, value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        if isinstance(value, Mapping):
            return dict(value) or None
        if isinstance(value, str) or not isinstance(value, Sequence):
            raise DescriptorError(
                f"Migration '{self.name}' 'unset' must be a mapping or a list of field names",
                declaration=self.name,
            )
        for field_name in value:
            if not isinstance(field_name, str) or not field_name:
                raise DescriptorError(
                    f"Migration '{self.name}' 'unset' contains an invalid field name: "
                    f"{field_name!r}",
                    declaration=self.name,
                )
        return {field_name: "" for field_name in value} or None

    def update_document(self) -> dict[str, Any]:
        """The update applied to matching documents."""
        update: dict[str, Any] = {}
        if self.set:
            update["$set"] = dict(self.set)
        if self.unset:
            update["$unset"] = dict(self.unset)
        return update

    def is_applicable(self) -> bool:
        """True while the current time is before the threshold."""
        return _as_utc(self.clock()) < self.threshold

    async def apply(self, collection: AsyncIOMotorCollection) -> ApplyResult:
        """
        Run the migration's bulk update (never upserts).

        The update is acknowledged and journaled (w=1, j=true) unless the
        model declared its own write concern, which is then used as is.

        Returns:
            ApplyResult with matched and modified counts
        """
        if collection.write_concern.is_server_default:
            collection = collection.with_options(write_concern=MIGRATION_WRITE_CONCERN)
        result = await collection.update_many(
            dict(self.filter), self.update_document(), upsert=False
        )
        apply_result = ApplyResult.from_update_result(result)
        logger.info(
            f"[{collection.name}] Migration '{self.name}': "
            f"{apply_result.matched_count} matched. {apply_result.modified_count} modified."
        )
        return apply_result
