"""
Boot-scoped logging context for MDB_MODELS.

Every engine boot gets a boot id. While a model boots, the collection name,
the phase (index_sync or migration) and the index or migration being
processed are kept in a context variable. Loggers returned by get_logger()
attach those fields to each record, so a structured formatter can group the
lines of one boot, or of one migration across every replica of a service.

The library never configures handlers; hosts decide where records go.
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_boot_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mdb_models_boot_id", default=None
)
_model_context: contextvars.ContextVar[dict[str, str] | None] = contextvars.ContextVar(
    "mdb_models_model_context", default=None
)


def start_boot(boot_id: str | None = None) -> str:
    """
    Begin a boot run. Records logged afterwards carry its ``boot_id``.

    Returns:
        The boot id (a new uuid4 hex string when none is given)
    """
    boot_id = boot_id or uuid.uuid4().hex
    _boot_id.set(boot_id)
    return boot_id


def end_boot() -> None:
    """Forget the boot id and any model context left in place."""
    _boot_id.set(None)
    _model_context.set(None)


@contextmanager
def model_context(
    collection_name: str | None = None,
    phase: str | None = None,
    index_name: str | None = None,
    migration_name: str | None = None,
) -> Iterator[None]:
    """
    Narrow the logging context for the duration of a block.

    Fields left as None keep their outer value, so a migration block nested
    in a model block still reports the collection.

    Example:
        with model_context(collection_name="users", phase="migration"):
            with model_context(migration_name="add-status"):
                logger.info("applying")   # carries all three fields
    """
    fields = {
        "collection_name": collection_name,
        "phase": phase,
        "index_name": index_name,
        "migration_name": migration_name,
    }
    merged = dict(_model_context.get() or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _model_context.set(merged)
    try:
        yield
    finally:
        _model_context.reset(token)


def current_context() -> dict[str, Any]:
    """Boot id and model fields that records logged right now would carry."""
    context: dict[str, Any] = dict(_model_context.get() or {})
    boot_id = _boot_id.get()
    if boot_id:
        context["boot_id"] = boot_id
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Adds the current boot context to each record; explicit ``extra`` keys win."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**current_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    return ContextualLoggerAdapter(logging.getLogger(name), {})
