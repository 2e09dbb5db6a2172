"""
Configuration management for MDB_MODELS.

Values come from explicit arguments first, then environment variables, then
the defaults in constants.py. ModelEngine can still be constructed with
direct parameters; EngineConfig is optional.
"""

import os

from .constants import (
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from .exceptions import ConfigurationError


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, str(default))
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{key} must be an integer, got {raw!r}", config_key=key, config_value=raw
        ) from e


def _env_bool(key: str, default: bool) -> bool:
    return os.getenv(key, "true" if default else "false").lower() == "true"


class EngineConfig:
    """
    ModelEngine configuration.

    Example:
        # Using environment variables
        config = EngineConfig()
        engine = ModelEngine(mongo_uri=config.mongo_uri, db_name=config.db_name)

        # Or overriding some of them
        config = EngineConfig(db_name="my_db", run_migrations=False)
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        max_pool_size: int | None = None,
        min_pool_size: int | None = None,
        server_selection_timeout_ms: int | None = None,
        sync_indexes: bool | None = None,
        run_migrations: bool | None = None,
        drop_unmanaged_indexes: bool | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: Database name (defaults to DB_NAME env var)
            max_pool_size: Maximum connection pool size (defaults to 50 or MONGO_MAX_POOL_SIZE)
            min_pool_size: Minimum connection pool size (defaults to 10 or MONGO_MIN_POOL_SIZE)
            server_selection_timeout_ms: Server selection timeout in ms (defaults to 5000)
            sync_indexes: Reconcile indexes at boot (MDB_MODELS_SYNC_INDEXES, default true)
            run_migrations: Apply migrations at boot (MDB_MODELS_RUN_MIGRATIONS, default true)
            drop_unmanaged_indexes: Drop indexes that are not declared
                (MDB_MODELS_DROP_UNMANAGED_INDEXES, default true)
        """
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", "")
        self.max_pool_size = max_pool_size or _env_int("MONGO_MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE)
        self.min_pool_size = min_pool_size or _env_int("MONGO_MIN_POOL_SIZE", DEFAULT_MIN_POOL_SIZE)
        self.server_selection_timeout_ms = server_selection_timeout_ms or _env_int(
            "MONGO_SERVER_SELECTION_TIMEOUT_MS", DEFAULT_SERVER_SELECTION_TIMEOUT_MS
        )
        self.sync_indexes = (
            sync_indexes if sync_indexes is not None else _env_bool("MDB_MODELS_SYNC_INDEXES", True)
        )
        self.run_migrations = (
            run_migrations
            if run_migrations is not None
            else _env_bool("MDB_MODELS_RUN_MIGRATIONS", True)
        )
        self.drop_unmanaged_indexes = (
            drop_unmanaged_indexes
            if drop_unmanaged_indexes is not None
            else _env_bool("MDB_MODELS_DROP_UNMANAGED_INDEXES", True)
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if not self.db_name:
            raise ConfigurationError(
                "db_name is required (set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size < 1:
            raise ConfigurationError(
                f"min_pool_size must be >= 1, got {self.min_pool_size}",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.server_selection_timeout_ms < 1000:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= 1000, got "
                f"{self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )
