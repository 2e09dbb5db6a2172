"""
Custom exceptions for MDB_MODELS.

Every error raised by the library derives from MongoModelError, which keeps
backward compatibility with RuntimeError and carries a context dictionary
(collection name, index name, migration name, ...) rendered into str().
"""

from typing import Any, Dict, Optional

from pymongo.errors import ConnectionFailure, ExecutionTimeout, ServerSelectionTimeoutError


class MongoModelError(RuntimeError):
    """
    Base exception for MDB_MODELS errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection_name,
                 index_name, migration_name, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class DescriptorError(MongoModelError):
    """
    Raised when index or migration declarations are malformed or conflict.

    Raised at resolution/construction time, before any network call is made.

    Attributes:
        message: Error message
        collection_name: Collection the declaration belongs to (if known)
        declaration: Name or position of the offending declaration (if known)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        collection_name: Optional[str] = None,
        declaration: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if collection_name:
            context["collection_name"] = collection_name
        if declaration:
            context["declaration"] = declaration
        super().__init__(message, context=context)
        self.collection_name = collection_name
        self.declaration = declaration


class IndexSyncError(MongoModelError):
    """
    Raised when an index create or drop fails during reconciliation.

    Changes applied before the failure are kept; the next sync re-diffs and
    retries only what is left.

    Attributes:
        message: Error message
        index_name: Name of the index being created or dropped
        operation: "create", "drop" or "list"
        report: Partial SyncReport describing what was already applied
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        index_name: Optional[str] = None,
        operation: Optional[str] = None,
        report: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if index_name:
            context["index_name"] = index_name
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context)
        self.index_name = index_name
        self.operation = operation
        self.report = report


class IndexConflictError(IndexSyncError):
    """
    Raised when an index create loses a race against a concurrent peer.

    The boot sequencer treats this as non-fatal: the peer's reconciliation
    is in flight and the next sync converges.
    """


class MigrationApplyError(MongoModelError):
    """
    Raised when a migration's bulk update fails.

    Later migrations in the same registry are not attempted.

    Attributes:
        message: Error message
        migration_name: Name of the failed migration
        report: Partial MigrationReport up to and including the failure
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        migration_name: Optional[str] = None,
        report: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if migration_name:
            context["migration_name"] = migration_name
        super().__init__(message, context=context)
        self.migration_name = migration_name
        self.report = report


class ConnectivityError(MongoModelError):
    """
    Raised on transport-level failures and timeouts.

    Never retried internally; retrying is left to the host.

    Attributes:
        message: Error message
        phase: Boot phase in which the failure happened ("index_sync", "migration")
        target: Index or migration name being processed (if any)
        report: Partial report of the phase
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        phase: Optional[str] = None,
        target: Optional[str] = None,
        report: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if phase:
            context["phase"] = phase
        if target:
            context["target"] = target
        super().__init__(message, context=context)
        self.phase = phase
        self.target = target
        self.report = report


class InitializationError(MongoModelError):
    """
    Raised when engine startup fails.

    Wraps connection failures and model boot failures; a service seeing this
    must not accept traffic.

    Attributes:
        message: Error message
        db_name: Database name (if available)
        collection_name: Model collection whose boot failed (if any)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        db_name: Optional[str] = None,
        collection_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if db_name:
            context["db_name"] = db_name
        if collection_name:
            context["collection_name"] = collection_name
        super().__init__(message, context=context)
        self.db_name = db_name
        self.collection_name = collection_name


class DocumentError(MongoModelError):
    """
    Raised by model instance operations.

    Covers documents that cannot be converted to or from a model instance,
    instance operations that need an id the instance does not have, and
    write operations for which the server returned no document.

    Attributes:
        message: Error message
        collection_name: Model collection
        operation: Model operation being run ("save", "update", "delete", "load")
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        collection_name: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if collection_name:
            context["collection_name"] = collection_name
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context)
        self.collection_name = collection_name
        self.operation = operation


class ConfigurationError(MongoModelError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


# Driver errors reported as ConnectivityError: transport failures and timeouts
CONNECTIVITY_ERRORS = (ConnectionFailure, ServerSelectionTimeoutError, ExecutionTimeout)
