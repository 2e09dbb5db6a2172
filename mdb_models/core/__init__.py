"""
Core MDB_MODELS components: model descriptors and documents, boot sequencing,
connection management and the engine facade.
"""

from .boot import BootReport, BootSequencer
from .connection import ConnectionManager
from .document import Model, ModelCursor
from .engine import ModelEngine
from .model import (
    ModelDescriptor,
    coerce_read_concern,
    coerce_read_preference,
    coerce_write_concern,
    collection_name_for,
    validate_collection_name,
)

__all__ = [
    "ModelEngine",
    "ModelDescriptor",
    "Model",
    "ModelCursor",
    "BootSequencer",
    "BootReport",
    "ConnectionManager",
    "collection_name_for",
    "validate_collection_name",
    "coerce_read_concern",
    "coerce_write_concern",
    "coerce_read_preference",
]
