"""
Unit tests for custom exceptions.

Tests exception hierarchy and error messages.
"""

from pymongo.errors import AutoReconnect, ExecutionTimeout, NetworkTimeout, OperationFailure

from mdb_models.exceptions import (
    CONNECTIVITY_ERRORS,
    ConfigurationError,
    ConnectivityError,
    DescriptorError,
    IndexConflictError,
    IndexSyncError,
    InitializationError,
    MigrationApplyError,
    MongoModelError,
)


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_base_is_runtime_error(self):
        """Test that MongoModelError is a RuntimeError."""
        assert isinstance(MongoModelError("test error"), RuntimeError)

    def test_subclasses(self):
        """Test that every library error derives from MongoModelError."""
        for error in (
            DescriptorError("bad"),
            IndexSyncError("bad"),
            MigrationApplyError("bad"),
            ConnectivityError("bad"),
            InitializationError("bad"),
            ConfigurationError("bad"),
        ):
            assert isinstance(error, MongoModelError)

    def test_conflict_is_index_sync_error(self):
        """Test that callers catching IndexSyncError also see conflicts."""
        assert isinstance(IndexConflictError("race"), IndexSyncError)

    def test_connectivity_errors_tuple(self):
        """Test which driver errors count as connectivity failures."""
        assert isinstance(AutoReconnect("reset"), CONNECTIVITY_ERRORS)
        assert isinstance(NetworkTimeout("timeout"), CONNECTIVITY_ERRORS)
        assert isinstance(ExecutionTimeout("maxTimeMS"), CONNECTIVITY_ERRORS)
        assert not isinstance(OperationFailure("bad", code=2), CONNECTIVITY_ERRORS)


class TestExceptionMessages:
    """Test exception message formatting."""

    def test_base_message(self):
        """Test MongoModelError message without context."""
        error = MongoModelError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.context == {}

    def test_base_message_with_context(self):
        """Test MongoModelError message with context."""
        error = MongoModelError("Something went wrong", context={"collection_name": "users"})
        assert "context:" in str(error)
        assert "collection_name=users" in str(error)

    def test_descriptor_error_attributes(self):
        """Test DescriptorError carries collection and declaration."""
        error = DescriptorError("bad index", collection_name="users", declaration="#0")
        assert error.collection_name == "users"
        assert error.declaration == "#0"
        assert "declaration=#0" in str(error)

    def test_index_sync_error_attributes(self):
        """Test IndexSyncError carries index name, operation and report."""
        report = object()
        error = IndexSyncError("failed", index_name="email_1", operation="create", report=report)
        assert error.index_name == "email_1"
        assert error.operation == "create"
        assert error.report is report
        assert "index_name=email_1" in str(error)

    def test_migration_apply_error_attributes(self):
        """Test MigrationApplyError carries the migration name."""
        error = MigrationApplyError("failed", migration_name="add-status")
        assert error.migration_name == "add-status"
        assert "migration_name=add-status" in str(error)

    def test_connectivity_error_attributes(self):
        """Test ConnectivityError carries phase and target."""
        error = ConnectivityError("lost", phase="index_sync", target="email_1")
        assert error.phase == "index_sync"
        assert error.target == "email_1"
        assert "phase=index_sync" in str(error)

    def test_initialization_error_attributes(self):
        """Test InitializationError carries db and collection names."""
        error = InitializationError("failed", db_name="app", collection_name="users")
        assert error.db_name == "app"
        assert error.collection_name == "users"

    def test_configuration_error_attributes(self):
        """Test ConfigurationError carries key and value."""
        error = ConfigurationError("bad", config_key="max_pool_size", config_value=0)
        assert error.config_key == "max_pool_size"
        assert error.config_value == 0
        assert "config_value=0" in str(error)
