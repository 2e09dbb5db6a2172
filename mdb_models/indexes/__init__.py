"""
Index management module for MDB_MODELS.

Provides resolution of index declarations into canonical specs and
reconciliation of those specs against live collections.
"""

from .resolver import INDEX_DECLARATION_SCHEMA, IndexDescriptorResolver, resolve_index_specs
from .spec import (
    ExistingIndex,
    IndexSpec,
    generate_index_name,
    is_id_index,
    normalize_direction,
    normalize_keys,
    normalize_options,
)
from .synchronizer import IndexDiff, IndexSynchronizer, SyncReport, compute_index_diff

__all__ = [
    # Specs
    "IndexSpec",
    "ExistingIndex",
    "generate_index_name",
    "is_id_index",
    "normalize_direction",
    "normalize_keys",
    "normalize_options",
    # Resolution
    "INDEX_DECLARATION_SCHEMA",
    "IndexDescriptorResolver",
    "resolve_index_specs",
    # Reconciliation
    "IndexDiff",
    "IndexSynchronizer",
    "SyncReport",
    "compute_index_diff",
]
