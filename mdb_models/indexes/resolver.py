"""
Index descriptor resolution.

Turns raw index declarations (dicts, IndexSpec instances or pymongo
IndexModel objects) into a validated list of IndexSpec. Shape is checked
with a JSON schema first, then semantic rules that a schema cannot express
(duplicate names, text and TTL constraints, ...) are applied.

Resolution is pure: no network access, same input always gives the same
output or the same error.

This module is part of MDB_MODELS.
"""

import logging
from typing import Any, Iterable, Mapping

from jsonschema import SchemaError, ValidationError, validate
from pymongo import IndexModel

from ..constants import (
    ASCENDING,
    DESCENDING,
    DIRECTION_ALIASES,
    HASHED,
    INDEX_KEY_TYPES,
    MAX_GEO2D_BITS,
    MAX_TEXT_WEIGHT,
    MAX_TTL_SECONDS,
    MIN_GEO2D_BITS,
    MIN_TEXT_WEIGHT,
    MIN_TTL_SECONDS,
    PRIMARY_KEY_INDEX_NAME,
    TEXT,
)
from ..exceptions import DescriptorError
from .spec import IndexSpec, is_id_index

logger = logging.getLogger(__name__)

WILDCARD_SEGMENT = "$**"

_DIRECTION_SCHEMA: dict[str, Any] = {
    "oneOf": [
        {"type": "number", "enum": [ASCENDING, DESCENDING]},
        {"type": "string", "enum": [*INDEX_KEY_TYPES, *DIRECTION_ALIASES.keys()]},
    ]
}

INDEX_DECLARATION_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "keys": {
            "oneOf": [
                {
                    "type": "object",
                    "minProperties": 1,
                    "additionalProperties": _DIRECTION_SCHEMA,
                },
                {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "array",
                        "minItems": 2,
                        "maxItems": 2,
                        "prefixItems": [{"type": "string"}, _DIRECTION_SCHEMA],
                    },
                },
            ]
        },
        "options": {"$ref": "#/$defs/indexOptions"},
    },
    "required": ["keys"],
    "additionalProperties": False,
    "$defs": {
        "indexOptions": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "unique": {"type": "boolean"},
                "sparse": {"type": "boolean"},
                "hidden": {"type": "boolean"},
                "background": {"type": "boolean"},
                "expireAfterSeconds": {
                    "type": "integer",
                    "minimum": MIN_TTL_SECONDS,
                    "maximum": MAX_TTL_SECONDS,
                },
                "partialFilterExpression": {"type": "object"},
                "weights": {
                    "type": "object",
                    "minProperties": 1,
                    "additionalProperties": {
                        "type": "integer",
                        "minimum": MIN_TEXT_WEIGHT,
                        "maximum": MAX_TEXT_WEIGHT,
                    },
                },
                "default_language": {"type": "string", "minLength": 1},
                "language_override": {"type": "string", "minLength": 1},
                "textIndexVersion": {"type": "integer"},
                "2dsphereIndexVersion": {"type": "integer"},
                "bits": {
                    "type": "integer",
                    "minimum": MIN_GEO2D_BITS,
                    "maximum": MAX_GEO2D_BITS,
                },
                "min": {"type": "number"},
                "max": {"type": "number"},
                "bucketSize": {"type": "number", "exclusiveMinimum": 0},
                "collation": {"type": "object"},
                "wildcardProjection": {"type": "object"},
                "storageEngine": {"type": "object"},
            },
            "additionalProperties": False,
        }
    },
}
"""JSON schema for a single index declaration."""


def _convert_tuples_to_lists(obj: Any) -> Any:
    """
    Recursively convert tuples to lists for JSON schema compatibility.

    Example:
        >>> _convert_tuples_to_lists({"keys": [("field1", 1)]})
        {'keys': [['field1', 1]]}
    """
    if isinstance(obj, tuple):
        return [_convert_tuples_to_lists(item) for item in obj]
    elif isinstance(obj, Mapping):
        return {key: _convert_tuples_to_lists(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_convert_tuples_to_lists(item) for item in obj]
    else:
        return obj


def _validate_field_path(path: str) -> str | None:
    """Return an error message if the dotted field path is malformed."""
    if not path:
        return "empty field path"
    if "\x00" in path:
        return f"field path {path!r} contains a NUL character"
    segments = path.split(".")
    for position, segment in enumerate(segments):
        if not segment:
            return f"field path {path!r} has an empty segment"
        if segment.startswith("$"):
            if segment == WILDCARD_SEGMENT and position == len(segments) - 1:
                continue
            return f"field path {path!r} has a segment starting with '$'"
    return None


def _declaration_from_object(declaration: Any) -> dict[str, Any]:
    """Bring any accepted declaration form to the plain dict form."""
    if isinstance(declaration, IndexSpec):
        return {
            "name": declaration.name,
            "keys": [list(k) for k in declaration.keys],
            "options": dict(declaration.options),
        }
    if isinstance(declaration, IndexModel):
        document = dict(declaration.document)
        keys = list(document.pop("key").items())
        name = document.pop("name", None)
        result: dict[str, Any] = {"keys": keys, "options": document}
        if name:
            result["name"] = name
        return result
    if isinstance(declaration, Mapping):
        return dict(declaration)
    raise TypeError(
        f"Index declaration must be a mapping, IndexSpec or IndexModel, "
        f"got {type(declaration).__name__}"
    )


class IndexDescriptorResolver:
    """
    Validates index declarations and resolves them into IndexSpec objects.

    Example:
        resolver = IndexDescriptorResolver("users")
        specs = resolver.resolve([
            {"keys": [("email", 1)], "options": {"unique": True}},
            {"keys": {"age": -1}},
        ])
    """

    def __init__(self, collection_name: str | None = None) -> None:
        self.collection_name = collection_name

    def _error(self, message: str, declaration: str | None = None) -> DescriptorError:
        prefix = f"[{self.collection_name}] " if self.collection_name else ""
        return DescriptorError(
            f"{prefix}{message}",
            collection_name=self.collection_name,
            declaration=declaration,
        )

    def _validate_shape(self, declaration: dict[str, Any], label: str) -> None:
        try:
            validate(instance=_convert_tuples_to_lists(declaration), schema=INDEX_DECLARATION_SCHEMA)
        except ValidationError as e:
            path_parts = list(e.absolute_path)
            location = ".".join(str(p) for p in path_parts) if path_parts else "root"
            raise self._error(f"Invalid index declaration at '{location}': {e.message}", label) from e
        except SchemaError as e:
            raise self._error(f"Invalid index schema definition: {e.message}", label) from e

    def resolve_one(self, declaration: Any, position: int = 0) -> IndexSpec:
        """
        Resolve a single declaration.

        Args:
            declaration: dict, IndexSpec or IndexModel
            position: Position in the declaration list, used in error messages

        Raises:
            DescriptorError: If the declaration is malformed
        """
        label = f"#{position}"
        try:
            raw = _declaration_from_object(declaration)
        except TypeError as e:
            raise self._error(str(e), label) from e

        if isinstance(raw.get("name"), str):
            label = raw["name"]
        self._validate_shape(raw, label)

        options = dict(raw.get("options") or {})
        top_name = raw.get("name")
        option_name = options.get("name")
        if top_name and option_name and top_name != option_name:
            raise self._error(
                f"Index name given twice with different values: {top_name!r} and {option_name!r}",
                label,
            )

        spec = IndexSpec.create(raw["keys"], options, name=top_name or option_name)
        self._check_spec(spec)
        return spec

    def _check_spec(self, spec: IndexSpec) -> None:
        """Semantic checks on one resolved spec."""
        label = spec.name
        seen_paths: set[str] = set()
        for path, _direction in spec.keys:
            problem = _validate_field_path(path)
            if problem:
                raise self._error(f"Index '{spec.name}': {problem}", label)
            if path in seen_paths:
                raise self._error(f"Index '{spec.name}' lists field '{path}' more than once", label)
            seen_paths.add(path)

        if spec.name == PRIMARY_KEY_INDEX_NAME or is_id_index(spec.keys):
            raise self._error(
                "The _id index is created automatically by MongoDB and cannot be declared",
                label,
            )

        directions = [direction for _path, direction in spec.keys]
        options = spec.options

        if spec.is_text:
            text_positions = [i for i, d in enumerate(directions) if d == TEXT]
            if text_positions != list(range(text_positions[0], text_positions[-1] + 1)):
                raise self._error(
                    f"Text index '{spec.name}' must list its text fields contiguously", label
                )

        if "weights" in options:
            if not spec.is_text:
                raise self._error(f"Index '{spec.name}' uses 'weights' without a text key", label)
            text_fields = spec.text_fields
            if WILDCARD_SEGMENT not in text_fields:
                unknown = [f for f in options["weights"] if f not in text_fields]
                if unknown:
                    raise self._error(
                        f"Text index '{spec.name}' has weights for non-text fields: {unknown}",
                        label,
                    )

        if "expireAfterSeconds" in options:
            if len(spec.keys) != 1:
                raise self._error(
                    f"TTL index '{spec.name}' must be a single-field index", label
                )
            if directions[0] not in (ASCENDING, DESCENDING):
                raise self._error(
                    f"TTL index '{spec.name}' must use an ascending or descending key", label
                )

        if options.get("unique") and HASHED in directions:
            raise self._error(f"Hashed index '{spec.name}' cannot be unique", label)

    def resolve(self, declarations: Iterable[Any]) -> list[IndexSpec]:
        """
        Resolve all declarations of one model, in declared order.

        Raises:
            DescriptorError: On the first malformed or conflicting declaration
        """
        specs: list[IndexSpec] = []
        by_name: dict[str, IndexSpec] = {}
        by_definition: dict[tuple[str, str], IndexSpec] = {}
        text_index: IndexSpec | None = None

        for position, declaration in enumerate(declarations or []):
            spec = self.resolve_one(declaration, position)

            if spec.name in by_name:
                raise self._error(f"Duplicate index name '{spec.name}'", spec.name)

            if spec.is_text:
                if text_index is not None:
                    raise self._error(
                        f"Only one text index is allowed per collection "
                        f"('{text_index.name}' and '{spec.name}')",
                        spec.name,
                    )
                text_index = spec

            _name, keys_sig, options_sig = spec.signature()
            twin = by_definition.get((keys_sig, options_sig))
            if twin is not None:
                raise self._error(
                    f"Indexes '{twin.name}' and '{spec.name}' have identical keys and options",
                    spec.name,
                )

            by_name[spec.name] = spec
            by_definition[(keys_sig, options_sig)] = spec
            specs.append(spec)

        logger.debug(
            f"[{self.collection_name}] Resolved {len(specs)} index declaration(s): "
            f"{[s.name for s in specs]}"
        )
        return specs


def resolve_index_specs(
    declarations: Iterable[Any], collection_name: str | None = None
) -> list[IndexSpec]:
    """
    Resolve raw index declarations into validated IndexSpec objects.

    Args:
        declarations: Iterable of dicts ({"keys": ..., "options": ..., "name": ...}),
                      IndexSpec or pymongo IndexModel instances
        collection_name: Collection the declarations belong to (error context)

    Returns:
        List of IndexSpec in declared order

    Raises:
        DescriptorError: If any declaration is malformed or they conflict
    """
    return IndexDescriptorResolver(collection_name).resolve(declarations)
