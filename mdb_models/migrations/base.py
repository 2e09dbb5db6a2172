"""
Migration capability.

A migration is any object with a ``name``, an ``is_applicable()`` gate and an
async ``apply(collection)`` that performs one bulk update. No base class is
required; the registry checks the shape structurally.

This module is part of MDB_MODELS.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from motor.motor_asyncio import AsyncIOMotorCollection


@dataclass(frozen=True)
class ApplyResult:
    """Counts returned by a migration's bulk update."""

    matched_count: int = 0
    modified_count: int = 0

    @classmethod
    def from_update_result(cls, result: Any) -> "ApplyResult":
        """Build from a pymongo UpdateResult."""
        return cls(
            matched_count=result.matched_count or 0,
            modified_count=result.modified_count or 0,
        )

    def to_dict(self) -> dict[str, int]:
        return {"matched_count": self.matched_count, "modified_count": self.modified_count}


@runtime_checkable
class Migration(Protocol):
    """
    Structural interface of a migration.

    Implementations must be idempotent: applying a migration twice leaves
    the collection as applying it once.
    """

    name: str

    def is_applicable(self) -> bool:
        """Whether the migration should still run."""
        ...

    async def apply(self, collection: AsyncIOMotorCollection) -> ApplyResult:
        """Apply the migration to the collection with a single bulk update."""
        ...


def is_migration(obj: Any) -> bool:
    """Check that obj satisfies the Migration capability, including an async apply."""
    if not isinstance(obj, Migration):
        return False
    if not isinstance(getattr(obj, "name", None), str) or not obj.name:
        return False
    return inspect.iscoroutinefunction(obj.apply)
