"""
Model descriptors.

A ModelDescriptor binds a collection name to the model's declared indexes,
migrations and per-collection read/write concerns. Declarations are resolved
and validated once, at construction; the descriptor is read-only afterwards.

This module is part of MDB_MODELS.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.read_concern import ReadConcern
from pymongo.read_preferences import (
    Nearest,
    Primary,
    PrimaryPreferred,
    Secondary,
    SecondaryPreferred,
)
from pymongo.write_concern import WriteConcern

from ..constants import MAX_COLLECTION_NAME_LENGTH, RESERVED_COLLECTION_PREFIX
from ..exceptions import DescriptorError
from ..indexes import IndexSpec, resolve_index_specs
from ..migrations import MigrationRegistry

READ_PREFERENCE_MODES = {
    "primary": Primary,
    "primarypreferred": PrimaryPreferred,
    "secondary": Secondary,
    "secondarypreferred": SecondaryPreferred,
    "nearest": Nearest,
}
"""Read preference mode names (case and underscore insensitive)."""

READ_PREFERENCE_TYPES = (Primary, PrimaryPreferred, Secondary, SecondaryPreferred, Nearest)

# Declarative write concern keys and their WriteConcern argument names
WRITE_CONCERN_KEYS = {
    "w": "w",
    "wtimeout": "wtimeout",
    "w_timeout": "wtimeout",
    "j": "j",
    "journal": "j",
    "fsync": "fsync",
}


def _snake_case(name: str) -> str:
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def _pluralize(word: str) -> str:
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


def collection_name_for(class_name: str) -> str:
    """
    Derive a collection name from a model class name.

    Example:
        >>> collection_name_for("UserProfile")
        'user_profiles'
        >>> collection_name_for("Category")
        'categories'
    """
    return _pluralize(_snake_case(class_name))


def validate_collection_name(name: Any) -> str:
    """
    Validate a MongoDB collection name.

    Raises:
        DescriptorError: If the name is empty, too long, reserved or contains
            '$' or a NUL character
    """
    if not isinstance(name, str) or not name:
        raise DescriptorError("Collection name must be a non-empty string")
    if len(name) > MAX_COLLECTION_NAME_LENGTH:
        raise DescriptorError(
            f"Collection name must be at most {MAX_COLLECTION_NAME_LENGTH} characters, "
            f"got {len(name)}",
            collection_name=name[:32],
        )
    if "$" in name or "\x00" in name:
        raise DescriptorError(
            f"Collection name {name!r} contains '$' or a NUL character", collection_name=name
        )
    if name.startswith(RESERVED_COLLECTION_PREFIX):
        raise DescriptorError(
            f"Collection name {name!r} uses the reserved '{RESERVED_COLLECTION_PREFIX}' prefix",
            collection_name=name,
        )
    return name


def coerce_read_concern(value: Any, collection_name: str | None = None) -> ReadConcern | None:
    """Accept a ReadConcern, a level string or {"level": ...}."""
    if value is None or isinstance(value, ReadConcern):
        return value
    if isinstance(value, Mapping):
        value = value.get("level")
    if isinstance(value, str) and value:
        return ReadConcern(value)
    raise DescriptorError(
        f"Invalid read concern {value!r}", collection_name=collection_name, declaration="read_concern"
    )


def coerce_write_concern(value: Any, collection_name: str | None = None) -> WriteConcern | None:
    """Accept a WriteConcern or a mapping with w / wtimeout / j / fsync."""
    if value is None or isinstance(value, WriteConcern):
        return value
    if not isinstance(value, Mapping):
        raise DescriptorError(
            f"Invalid write concern {value!r}",
            collection_name=collection_name,
            declaration="write_concern",
        )
    kwargs: dict[str, Any] = {}
    for key, option in value.items():
        if key not in WRITE_CONCERN_KEYS:
            raise DescriptorError(
                f"Unknown write concern option '{key}'",
                collection_name=collection_name,
                declaration="write_concern",
            )
        kwargs[WRITE_CONCERN_KEYS[key]] = option
    try:
        return WriteConcern(**kwargs)
    except (PyMongoConfigurationError, TypeError, ValueError) as e:
        raise DescriptorError(
            f"Invalid write concern {dict(value)!r}: {e}",
            collection_name=collection_name,
            declaration="write_concern",
        ) from e


def coerce_read_preference(value: Any, collection_name: str | None = None) -> Any:
    """
    Accept a pymongo read preference, a mode name, or a zero-argument
    callable returning either.
    """
    if value is None or isinstance(value, READ_PREFERENCE_TYPES):
        return value
    if callable(value):
        return coerce_read_preference(value(), collection_name)
    if isinstance(value, str):
        mode = READ_PREFERENCE_MODES.get(value.replace("_", "").lower())
        if mode is not None:
            return mode()
    raise DescriptorError(
        f"Invalid read preference {value!r}",
        collection_name=collection_name,
        declaration="read_preference",
    )


class ModelDescriptor:
    """
    Everything the boot sequence needs to know about one model.

    Attributes:
        collection_name: Backing collection
        index_specs: Resolved, validated index specs (declared order)
        migrations: MigrationRegistry (declared order)
        read_concern / write_concern / read_preference: Applied to the collection handle

    Example:
        users = ModelDescriptor(
            "users",
            indexes=[{"keys": [("email", 1)], "options": {"unique": True}}],
            migrations=[IntervalMigration(...)],
            write_concern={"w": "majority"},
        )
    """

    def __init__(
        self,
        collection_name: str,
        indexes: Iterable[Any] | None = None,
        migrations: Iterable[Any] | None = None,
        read_concern: Any = None,
        write_concern: Any = None,
        read_preference: Any | Callable[[], Any] = None,
    ) -> None:
        """
        Raises:
            DescriptorError: If any declaration is malformed
        """
        self._collection_name = validate_collection_name(collection_name)
        self._index_specs = resolve_index_specs(list(indexes or []), collection_name)
        self._migrations = MigrationRegistry(migrations, collection_name=collection_name)
        self._read_concern = coerce_read_concern(read_concern, collection_name)
        self._write_concern = coerce_write_concern(write_concern, collection_name)
        self._read_preference = coerce_read_preference(read_preference, collection_name)

    @classmethod
    def for_class(cls, model_class: type, **kwargs: Any) -> "ModelDescriptor":
        """
        Build a descriptor for a model class.

        The collection name defaults to the pluralized snake_case class name
        and can be overridden with ``collection_name=``.
        """
        collection_name = kwargs.pop("collection_name", None) or collection_name_for(
            model_class.__name__
        )
        return cls(collection_name, **kwargs)

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def index_specs(self) -> list[IndexSpec]:
        return list(self._index_specs)

    @property
    def migrations(self) -> MigrationRegistry:
        return self._migrations

    @property
    def read_concern(self) -> ReadConcern | None:
        return self._read_concern

    @property
    def write_concern(self) -> WriteConcern | None:
        return self._write_concern

    @property
    def read_preference(self) -> Any:
        return self._read_preference

    def collection(self, database: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
        """Collection handle with this model's concerns applied."""
        return database.get_collection(
            self._collection_name,
            read_preference=self._read_preference,
            write_concern=self._write_concern,
            read_concern=self._read_concern,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_name": self._collection_name,
            "indexes": [spec.to_dict() for spec in self._index_specs],
            "migrations": self._migrations.names,
            "read_concern": self._read_concern.document if self._read_concern else None,
            "write_concern": self._write_concern.document if self._write_concern else None,
            "read_preference": (
                self._read_preference.mongos_mode if self._read_preference else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"ModelDescriptor({self._collection_name!r}, "
            f"indexes={[s.name for s in self._index_specs]}, "
            f"migrations={self._migrations.names})"
        )
