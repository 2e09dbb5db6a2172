"""
Index specifications.

IndexSpec is the canonical, order-preserving description of one declared
index; ExistingIndex is the same shape read back from listIndexes. Both
reduce to a signature (name, server-form keys, normalized options) that the
synchronizer compares byte-for-byte.

This module is part of MDB_MODELS.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from bson import json_util
from pymongo import IndexModel

from ..constants import (
    ASCENDING,
    DEFAULT_LANGUAGE_OVERRIDE,
    DEFAULT_TEXT_LANGUAGE,
    DEFAULT_TEXT_WEIGHT,
    DIRECTION_ALIASES,
    FALSE_DEFAULT_INDEX_OPTIONS,
    IGNORED_INDEX_FIELDS,
    INDEX_KEY_TYPES,
    PRIMARY_KEY_FIELD,
    PRIMARY_KEY_INDEX_NAME,
    TEXT,
)

IndexKey = tuple[str, int | str]

# Server-side representation of the text portion of a compound key
TEXT_KEY_FIELD = "_fts"
TEXT_KEY_SUFFIX_FIELD = "_ftsx"


def normalize_direction(value: Any) -> int | str:
    """
    Normalize a declared key direction or type.

    Accepts 1 / -1 (ints or integral floats), the aliases "ascending", "asc",
    "descending", "desc", and the special types in INDEX_KEY_TYPES.

    Raises:
        ValueError: If the value is not a recognized direction or type
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid index direction {value!r}")
    if isinstance(value, (int, float)) and value in (1, -1):
        return int(value)
    if isinstance(value, str):
        if value in INDEX_KEY_TYPES:
            return value
        alias = DIRECTION_ALIASES.get(value.lower())
        if alias is not None:
            return alias
    raise ValueError(f"Invalid index direction {value!r}")


def normalize_keys(keys: Mapping[str, Any] | Sequence[Sequence[Any]]) -> list[IndexKey]:
    """
    Normalize index keys to an ordered list of (field_path, direction) tuples.

    Args:
        keys: Index keys as an ordered mapping or a sequence of pairs

    Returns:
        List of (field_path, direction) tuples
    """
    items = keys.items() if isinstance(keys, Mapping) else keys
    normalized = []
    for item in items:
        path, direction = item
        normalized.append((path, normalize_direction(direction)))
    return normalized


def generate_index_name(keys: Sequence[IndexKey]) -> str:
    """
    Derive an index name from its keys the same way the driver does.

    Example:
        [("email", 1), ("age", -1)] -> "email_1_age_-1"
    """
    return "_".join(f"{path}_{direction}" for path, direction in keys)


def is_id_index(keys: Sequence[IndexKey]) -> bool:
    """Check if index keys are exactly the primary key index keys, {_id: 1}."""
    return len(keys) == 1 and keys[0][0] == PRIMARY_KEY_FIELD and keys[0][1] == ASCENDING


def _normalize_value(value: Any) -> Any:
    """Recursively turn integral floats into ints so 1.0 and 1 compare equal."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping):
        return {k: _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value


def normalize_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalize index options for comparison.

    Drops server bookkeeping fields and false-valued boolean options whose
    default is false, and normalizes numeric values.
    """
    normalized: dict[str, Any] = {}
    for key, value in options.items():
        if key in IGNORED_INDEX_FIELDS:
            continue
        if key in FALSE_DEFAULT_INDEX_OPTIONS and value is False:
            continue
        normalized[key] = _normalize_value(value)
    return normalized


def canonical_json(value: Any) -> str:
    """Serialize a value to canonical Extended JSON (sorted keys)."""
    return json_util.dumps(value, sort_keys=True)


def _keys_signature(keys: Sequence[IndexKey]) -> str:
    return canonical_json([[path, _normalize_value(direction)] for path, direction in keys])


@dataclass(frozen=True, eq=False)
class IndexSpec:
    """
    Canonical description of one declared index.

    Attributes:
        name: Index name (explicit, or derived from keys)
        keys: Ordered (field_path, direction) pairs; order defines prefix matching
        options: Index options (unique, sparse, expireAfterSeconds, weights, ...)
    """

    name: str
    keys: tuple[IndexKey, ...]
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple((path, d) for path, d in self.keys))
        options = copy.deepcopy(dict(self.options))
        options.pop("name", None)
        object.__setattr__(self, "options", options)

    @classmethod
    def create(
        cls,
        keys: Mapping[str, Any] | Sequence[Sequence[Any]],
        options: Mapping[str, Any] | None = None,
        name: str | None = None,
    ) -> "IndexSpec":
        """
        Build a spec from raw keys and options, normalizing directions and
        deriving the name when none is given.
        """
        normalized_keys = normalize_keys(keys)
        options = dict(options or {})
        name = name or options.get("name") or generate_index_name(normalized_keys)
        return cls(name=name, keys=tuple(normalized_keys), options=options)

    @property
    def text_fields(self) -> list[str]:
        """Field paths indexed with the text type, in declared order."""
        return [path for path, direction in self.keys if direction == TEXT]

    @property
    def is_text(self) -> bool:
        return bool(self.text_fields)

    def server_keys(self) -> list[IndexKey]:
        """
        Keys as the server reports them.

        Text fields collapse into ("_fts", "text"), ("_ftsx", 1) at the
        position of the first text field.
        """
        if not self.is_text:
            return list(self.keys)
        server_keys: list[IndexKey] = []
        text_emitted = False
        for path, direction in self.keys:
            if direction == TEXT:
                if not text_emitted:
                    server_keys.extend([(TEXT_KEY_FIELD, TEXT), (TEXT_KEY_SUFFIX_FIELD, 1)])
                    text_emitted = True
                continue
            server_keys.append((path, direction))
        return server_keys

    def server_options(self) -> dict[str, Any]:
        """Options as the server reports them, with text defaults filled in."""
        options = copy.deepcopy(self.options)
        if self.is_text:
            weights = {path: DEFAULT_TEXT_WEIGHT for path in self.text_fields}
            weights.update(options.get("weights") or {})
            options["weights"] = weights
            options.setdefault("default_language", DEFAULT_TEXT_LANGUAGE)
            options.setdefault("language_override", DEFAULT_LANGUAGE_OVERRIDE)
        return normalize_options(options)

    def signature(self) -> tuple[str, str, str]:
        """(name, canonical keys, canonical options) used for equality with the server."""
        return (
            self.name,
            _keys_signature(self.server_keys()),
            canonical_json(self.server_options()),
        )

    def matches(self, other: "IndexSpec | ExistingIndex") -> bool:
        """Check whether another spec or a live index is identical to this one."""
        return self.signature() == other.signature()

    def create_arguments(self) -> tuple[list[IndexKey], dict[str, Any]]:
        """Positional keys and keyword options for Collection.create_index."""
        kwargs = copy.deepcopy(self.options)
        kwargs["name"] = self.name
        return list(self.keys), kwargs

    def to_index_model(self) -> IndexModel:
        """Convert to a pymongo IndexModel."""
        keys, kwargs = self.create_arguments()
        return IndexModel(keys, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "keys": [list(k) for k in self.keys],
            "options": copy.deepcopy(self.options),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexSpec):
            return NotImplemented
        return self.signature() == other.signature()

    def __hash__(self) -> int:
        return hash(self.signature())


@dataclass(frozen=True, eq=False)
class ExistingIndex:
    """
    An index read from the live collection.

    Attributes:
        name: Index name
        keys: Keys in server form (text indexes appear as _fts / _ftsx)
        options: Remaining index document fields
        document: Raw listIndexes document
    """

    name: str
    keys: tuple[IndexKey, ...]
    options: dict[str, Any] = field(default_factory=dict)
    document: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ExistingIndex":
        """Build from a listIndexes result document."""
        keys = tuple(
            (path, _normalize_value(direction)) for path, direction in document.get("key", {}).items()
        )
        options = {k: v for k, v in document.items() if k not in ("key", "name", "v", "ns")}
        return cls(
            name=document.get("name") or generate_index_name(keys),
            keys=keys,
            options=options,
            document=dict(document),
        )

    @property
    def is_primary(self) -> bool:
        """True for the implicit _id index, which is never dropped."""
        return self.name == PRIMARY_KEY_INDEX_NAME

    def signature(self) -> tuple[str, str, str]:
        return (
            self.name,
            _keys_signature(self.keys),
            canonical_json(normalize_options(self.options)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "keys": [list(k) for k in self.keys],
            "options": copy.deepcopy(self.options),
        }
