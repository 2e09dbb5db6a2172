"""
Constants for MDB_MODELS.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# INDEX KEY DIRECTIONS / TYPES
# ============================================================================

ASCENDING: Final[int] = 1
DESCENDING: Final[int] = -1
GEO2D: Final[str] = "2d"
GEOSPHERE: Final[str] = "2dsphere"
GEOHAYSTACK: Final[str] = "geoHaystack"
TEXT: Final[str] = "text"
HASHED: Final[str] = "hashed"

INDEX_KEY_TYPES: Final[tuple[str, ...]] = (GEO2D, GEOSPHERE, GEOHAYSTACK, TEXT, HASHED)
"""String key types accepted in index declarations."""

DIRECTION_ALIASES: Final[dict[str, int]] = {
    "ascending": ASCENDING,
    "asc": ASCENDING,
    "descending": DESCENDING,
    "desc": DESCENDING,
}
"""Human-friendly direction names, normalized to 1 / -1."""

GEO_KEY_TYPES: Final[tuple[str, ...]] = (GEO2D, GEOSPHERE, GEOHAYSTACK)

# ============================================================================
# PRIMARY KEY INDEX
# ============================================================================

PRIMARY_KEY_FIELD: Final[str] = "_id"
PRIMARY_KEY_INDEX_NAME: Final[str] = "_id_"
"""Name of the implicit index MongoDB maintains on every collection."""

# ============================================================================
# INDEX OPTION CONSTRAINTS
# ============================================================================

MIN_TTL_SECONDS: Final[int] = 0
"""Minimum TTL value in seconds (0 expires documents at the indexed time)."""

MAX_TTL_SECONDS: Final[int] = 2147483647
"""Maximum TTL value accepted by the server (int32)."""

MIN_TEXT_WEIGHT: Final[int] = 1
MAX_TEXT_WEIGHT: Final[int] = 99999

MIN_GEO2D_BITS: Final[int] = 1
MAX_GEO2D_BITS: Final[int] = 32

# Text index defaults applied by the server when not declared
DEFAULT_TEXT_LANGUAGE: Final[str] = "english"
DEFAULT_LANGUAGE_OVERRIDE: Final[str] = "language"
DEFAULT_TEXT_WEIGHT: Final[int] = 1

FALSE_DEFAULT_INDEX_OPTIONS: Final[tuple[str, ...]] = ("unique", "sparse", "hidden")
"""Boolean options for which False means the same as absent."""

IGNORED_INDEX_FIELDS: Final[tuple[str, ...]] = (
    "v",
    "ns",
    "key",
    "name",
    "background",
    "textIndexVersion",
    "2dsphereIndexVersion",
)
"""Server bookkeeping fields excluded when comparing index options."""

# ============================================================================
# SERVER ERROR CODES
# ============================================================================

NAMESPACE_NOT_FOUND_CODE: Final[int] = 26
INDEX_NOT_FOUND_CODE: Final[int] = 27
INDEX_ALREADY_EXISTS_CODE: Final[int] = 68
INDEX_OPTIONS_CONFLICT_CODE: Final[int] = 85
INDEX_KEY_SPECS_CONFLICT_CODE: Final[int] = 86

INDEX_GONE_CODES: Final[tuple[int, ...]] = (NAMESPACE_NOT_FOUND_CODE, INDEX_NOT_FOUND_CODE)
"""Drop failures meaning the index is already absent."""

INDEX_CONFLICT_CODES: Final[tuple[int, ...]] = (
    INDEX_ALREADY_EXISTS_CODE,
    INDEX_OPTIONS_CONFLICT_CODE,
    INDEX_KEY_SPECS_CONFLICT_CODE,
)
"""Create failures caused by a concurrently created, different definition."""

# ============================================================================
# VALIDATION CONSTANTS
# ============================================================================

MAX_COLLECTION_NAME_LENGTH: Final[int] = 255
"""Maximum length for MongoDB collection names."""

RESERVED_COLLECTION_PREFIX: Final[str] = "system."
"""Collection name prefix reserved for MongoDB system collections."""

# ============================================================================
# DATABASE CONSTANTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

APP_NAME: Final[str] = "MDB_MODELS"

# ============================================================================
# MIGRATION STATUS CONSTANTS
# ============================================================================

MIGRATION_STATUS_APPLIED: Final[str] = "applied"
MIGRATION_STATUS_INACTIVE: Final[str] = "inactive"
MIGRATION_STATUS_FAILED: Final[str] = "failed"

# ============================================================================
# BOOT PHASES
# ============================================================================

PHASE_INDEX_SYNC: Final[str] = "index_sync"
PHASE_MIGRATION: Final[str] = "migration"
