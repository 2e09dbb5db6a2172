"""
Migration registry.

Ordered collection of a model's migrations. Order is declaration order and
is the order the executor applies them in.

This module is part of MDB_MODELS.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from ..exceptions import DescriptorError
from .base import Migration, is_migration


class MigrationRegistry:
    """
    Ordered, name-unique list of migrations.

    Example:
        registry = MigrationRegistry([add_status, drop_legacy_flag])
        registry.register(rename_field)
    """

    def __init__(
        self, migrations: Iterable[Any] | None = None, collection_name: str | None = None
    ) -> None:
        self.collection_name = collection_name
        self._migrations: list[Migration] = []
        for migration in migrations or []:
            self.register(migration)

    def register(self, migration: Any) -> Migration:
        """
        Append a migration.

        Raises:
            DescriptorError: If the object is not a migration or its name is taken
        """
        if not is_migration(migration):
            raise DescriptorError(
                f"{type(migration).__name__} is not a migration: expected a non-empty 'name', "
                f"'is_applicable()' and 'async apply(collection)'",
                collection_name=self.collection_name,
            )
        if migration.name in self.names:
            raise DescriptorError(
                f"Duplicate migration name '{migration.name}'",
                collection_name=self.collection_name,
                declaration=migration.name,
            )
        self._migrations.append(migration)
        return migration

    @property
    def names(self) -> list[str]:
        return [migration.name for migration in self._migrations]

    def get(self, name: str) -> Migration | None:
        return next((m for m in self._migrations if m.name == name), None)

    def __iter__(self) -> Iterator[Migration]:
        return iter(list(self._migrations))

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __repr__(self) -> str:
        return f"MigrationRegistry({self.names!r})"
