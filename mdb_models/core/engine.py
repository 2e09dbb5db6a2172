"""
Engine

Entry point for services using MDB_MODELS. The engine owns the MongoDB
connection, keeps the registered model descriptors and boots every model
(index sync, then migrations) during initialize().

This module is part of MDB_MODELS.
"""

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..config import EngineConfig
from ..exceptions import DescriptorError, InitializationError, MongoModelError
from ..indexes import IndexSynchronizer
from ..observability import get_logger as get_contextual_logger
from ..observability import (
    end_boot,
    get_metrics_collector,
    start_boot,
    timed_operation,
)
from .boot import BootReport, BootSequencer
from .connection import ConnectionManager
from .document import Model
from .model import ModelDescriptor

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ModelEngine:
    """
    Connection plus boot orchestration for a set of models.

    Example:
        engine = ModelEngine("mongodb://localhost:27017", "app")
        engine.register_model(users)
        async with engine:
            collection = engine.get_collection("users")
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        models: list[ModelDescriptor | type[Model]] | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            mongo_uri: MongoDB connection URI (overrides config / MONGO_URI)
            db_name: Database name (overrides config / DB_NAME)
            models: Models to register
            config: EngineConfig; built from the environment when omitted

        Raises:
            ConfigurationError: If the resulting configuration is invalid
        """
        self.config = config or EngineConfig()
        if mongo_uri:
            self.config.mongo_uri = mongo_uri
        if db_name:
            self.config.db_name = db_name
        self.config.validate()

        self.mongo_uri = self.config.mongo_uri
        self.db_name = self.config.db_name

        self._connection_manager = ConnectionManager(
            mongo_uri=self.config.mongo_uri,
            db_name=self.config.db_name,
            max_pool_size=self.config.max_pool_size,
            min_pool_size=self.config.min_pool_size,
            server_selection_timeout_ms=self.config.server_selection_timeout_ms,
        )
        self._models: dict[str, ModelDescriptor] = {}
        self._boot_reports: dict[str, BootReport] = {}
        self._booted: bool = False

        for model in models or []:
            self.register_model(model)

    def register_model(self, model: ModelDescriptor | type[Model]) -> ModelDescriptor:
        """
        Register a model to be booted by initialize().

        Accepts a ModelDescriptor or a Model subclass, whose descriptor is
        registered.

        Raises:
            DescriptorError: If another model already uses the collection
        """
        if isinstance(model, type) and issubclass(model, Model):
            model = model.descriptor
        if not isinstance(model, ModelDescriptor):
            raise DescriptorError(
                f"Expected a ModelDescriptor, got {type(model).__name__}"
            )
        if model.collection_name in self._models:
            raise DescriptorError(
                f"A model for collection '{model.collection_name}' is already registered",
                collection_name=model.collection_name,
            )
        self._models[model.collection_name] = model
        logger.debug(f"Registered model '{model.collection_name}'")
        return model

    @timed_operation("engine.initialize")
    async def initialize(self) -> None:
        """
        Connect, then boot every registered model in registration order.

        Calling it again re-runs the boot sequence; every step is idempotent.

        Raises:
            InitializationError: If the connection or any model's boot fails
        """
        await self._connection_manager.initialize()

        sequencer = BootSequencer(
            self._connection_manager.mongo_db,
            synchronizer=IndexSynchronizer(drop_unmanaged=self.config.drop_unmanaged_indexes),
        )

        self._booted = False
        start_boot()
        try:
            for model in self._models.values():
                try:
                    self._boot_reports[model.collection_name] = await sequencer.initialize(
                        model,
                        sync_indexes=self.config.sync_indexes,
                        run_migrations=self.config.run_migrations,
                    )
                except MongoModelError as e:
                    contextual_logger.critical(
                        f"[{model.collection_name}] ❌ Model boot failed",
                        extra={"error_type": type(e).__name__, "error": str(e)},
                    )
                    raise InitializationError(
                        f"Failed to initialize model '{model.collection_name}': {e.message}",
                        db_name=self.db_name,
                        collection_name=model.collection_name,
                        context={"error_type": type(e).__name__},
                    ) from e
            self._booted = True

            contextual_logger.info(
                "ModelEngine initialized",
                extra={"db_name": self.db_name, "models": list(self._models)},
            )
        finally:
            end_boot()

    @property
    def initialized(self) -> bool:
        """True once the connection is up and every model booted."""
        return self._connection_manager.initialized and self._booted

    @property
    def mongo_client(self) -> AsyncIOMotorClient:
        return self._connection_manager.mongo_client

    @property
    def mongo_db(self) -> AsyncIOMotorDatabase:
        return self._connection_manager.mongo_db

    @property
    def boot_reports(self) -> dict[str, BootReport]:
        return dict(self._boot_reports)

    def get_model(self, collection_name: str) -> ModelDescriptor | None:
        return self._models.get(collection_name)

    def list_models(self) -> list[str]:
        return list(self._models)

    def get_collection(
        self, model: ModelDescriptor | type[Model] | str
    ) -> AsyncIOMotorCollection:
        """
        Collection handle for a registered model, with its concerns applied.

        Raises:
            KeyError: If no model is registered under that collection name
            RuntimeError: If the engine is not connected
        """
        if isinstance(model, str):
            if model not in self._models:
                raise KeyError(f"No model registered for collection '{model}'")
            model = self._models[model]
        elif isinstance(model, type) and issubclass(model, Model):
            model = model.descriptor
        return model.collection(self._connection_manager.mongo_db)

    def get_metrics(self) -> dict[str, Any]:
        """Operation metrics recorded so far."""
        return get_metrics_collector().get_metrics()

    async def shutdown(self) -> None:
        """Close the connection. Safe to call more than once."""
        was_connected = self._connection_manager.initialized
        self._booted = False
        await self._connection_manager.shutdown()
        if was_connected:
            logger.info(f"ModelEngine for database '{self.db_name}' shut down.")

    async def __aenter__(self) -> "ModelEngine":
        try:
            await self.initialize()
        except InitializationError:
            await self.shutdown()
            raise
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()
