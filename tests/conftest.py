"""
Pytest configuration and shared fixtures for MDB_MODELS tests.

This module provides:
- A stateful fake Motor collection that behaves like the server for index,
  query and write calls
- Mock database / client fixtures
- Testcontainers fixtures for integration tests
"""

import copy
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import OperationFailure
from pymongo.write_concern import WriteConcern

from mdb_models.observability import end_boot, get_metrics_collector

PRIMARY_INDEX_DOCUMENT = {"v": 2, "key": {"_id": 1}, "name": "_id_"}


# ============================================================================
# FAKE MOTOR COLLECTION
# ============================================================================


def _server_index_document(keys: List[tuple], options: Dict[str, Any]) -> Dict[str, Any]:
    """Build the listIndexes document the server would report for a create_index call."""
    options = dict(options)
    name = options.pop("name")
    text_fields = [path for path, direction in keys if direction == "text"]
    key_doc: Dict[str, Any] = {}
    for path, direction in keys:
        if direction == "text":
            if "_fts" not in key_doc:
                key_doc["_fts"] = "text"
                key_doc["_ftsx"] = 1
            continue
        key_doc[path] = direction

    document: Dict[str, Any] = {"v": 2, "key": key_doc, "name": name}
    document.update(options)
    if text_fields:
        weights = {path: 1 for path in text_fields}
        weights.update(options.get("weights") or {})
        document["weights"] = weights
        document.setdefault("default_language", "english")
        document.setdefault("language_override", "language")
        document["textIndexVersion"] = 3
    if any(direction == "2dsphere" for _path, direction in keys):
        document["2dsphereIndexVersion"] = 3
    return document


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, condition in query.items():
        present = field in document
        value = document.get(field)
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            for operator, operand in condition.items():
                if operator == "$exists" and present != bool(operand):
                    return False
                if operator == "$ne" and value == operand:
                    return False
                if operator == "$in" and value not in operand:
                    return False
        elif not present or value != condition:
            return False
    return True


class FakeCollection:
    """
    In-memory stand-in for AsyncIOMotorCollection.

    Index methods emulate the server's reporting (text indexes collapse to
    _fts/_ftsx, the _id_ index always exists). Queries support equality,
    $exists, $ne and $in filters; updates support $set and $unset.
    with_options records the write concern and returns the same collection.
    """

    def __init__(self, name: str = "test_collection", documents: List[Dict[str, Any]] = None):
        self.name = name
        self.indexes: List[Dict[str, Any]] = [copy.deepcopy(PRIMARY_INDEX_DOCUMENT)]
        self.documents: List[Dict[str, Any]] = documents if documents is not None else []
        self.list_indexes = MagicMock(side_effect=self._list_indexes)
        self.create_index = AsyncMock(side_effect=self._create_index)
        self.drop_index = AsyncMock(side_effect=self._drop_index)
        self.update_many = AsyncMock(side_effect=self._update_many)
        self.write_concern = WriteConcern()
        self.with_options = MagicMock(side_effect=self._with_options)
        self.find = MagicMock(side_effect=self._find)
        self.find_one = AsyncMock(side_effect=self._find_one)
        self.find_one_and_delete = AsyncMock(side_effect=self._find_one_and_delete)
        self.find_one_and_replace = AsyncMock(side_effect=self._find_one_and_replace)
        self.find_one_and_update = AsyncMock(side_effect=self._find_one_and_update)
        self.delete_one = AsyncMock(side_effect=self._delete_one)
        self.delete_many = AsyncMock(side_effect=self._delete_many)

    @property
    def index_names(self) -> List[str]:
        return [index["name"] for index in self.indexes]

    def get_index(self, name: str) -> Dict[str, Any]:
        return next((index for index in self.indexes if index["name"] == name), None)

    def add_index(self, keys: List[tuple], **options: Any) -> None:
        """Seed an index directly, bypassing call recording."""
        options.setdefault("name", "_".join(f"{k}_{v}" for k, v in keys))
        self.indexes.append(_server_index_document(keys, options))

    def _list_indexes(self):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=copy.deepcopy(self.indexes))
        return cursor

    async def _create_index(self, keys, **options):
        document = _server_index_document(list(keys), options)
        same_name = self.get_index(document["name"])
        if same_name is not None:
            if same_name == document:
                return document["name"]
            raise OperationFailure(
                f"Index with name: {document['name']} already exists with different options",
                code=85,
            )
        same_keys = next(
            (
                index
                for index in self.indexes
                if list(index["key"].items()) == list(document["key"].items())
            ),
            None,
        )
        if same_keys is not None:
            raise OperationFailure(
                f"Index already exists with a different name: {same_keys['name']}", code=85
            )
        self.indexes.append(document)
        return document["name"]

    async def _drop_index(self, name):
        if name == "_id_":
            raise OperationFailure("cannot drop _id index", code=72)
        index = self.get_index(name)
        if index is None:
            raise OperationFailure(f"index not found with name [{name}]", code=27)
        self.indexes.remove(index)

    async def _update_many(self, query, update, upsert=False):
        matched = 0
        modified = 0
        for document in self.documents:
            if not _matches(document, query):
                continue
            matched += 1
            if _apply_update(document, update):
                modified += 1
        return MagicMock(matched_count=matched, modified_count=modified)

    def _with_options(self, **kwargs):
        if kwargs.get("write_concern") is not None:
            self.write_concern = kwargs["write_concern"]
        return self

    def _first_match(self, query) -> Dict[str, Any]:
        return next((document for document in self.documents if _matches(document, query)), None)

    def _find(self, query=None, **kwargs):
        return FakeCursor(
            [copy.deepcopy(d) for d in self.documents if _matches(d, query or {})]
        )

    async def _find_one(self, query=None, **kwargs):
        document = self._first_match(query or {})
        return copy.deepcopy(document) if document is not None else None

    async def _find_one_and_delete(self, query, **kwargs):
        document = self._first_match(query)
        if document is None:
            return None
        self.documents.remove(document)
        return document

    async def _find_one_and_replace(
        self, query, replacement, upsert=False, return_document=ReturnDocument.BEFORE, **kwargs
    ):
        replacement = {k: v for k, v in replacement.items() if k != "_id"}
        document = self._first_match(query)
        if document is None:
            if not upsert:
                return None
            object_id = query.get("_id") if not isinstance(query.get("_id"), dict) else None
            document = {"_id": object_id if object_id is not None else ObjectId(), **replacement}
            self.documents.append(document)
            return copy.deepcopy(document) if return_document else None
        before = copy.deepcopy(document)
        object_id = document["_id"]
        document.clear()
        document.update({"_id": object_id, **replacement})
        return copy.deepcopy(document) if return_document else before

    async def _find_one_and_update(
        self, query, update, return_document=ReturnDocument.BEFORE, **kwargs
    ):
        document = self._first_match(query)
        if document is None:
            return None
        before = copy.deepcopy(document)
        _apply_update(document, update)
        return copy.deepcopy(document) if return_document else before

    async def _delete_one(self, query, **kwargs):
        document = self._first_match(query)
        if document is not None:
            self.documents.remove(document)
        return MagicMock(deleted_count=0 if document is None else 1)

    async def _delete_many(self, query, **kwargs):
        remaining = [d for d in self.documents if not _matches(d, query)]
        deleted = len(self.documents) - len(remaining)
        self.documents[:] = remaining
        return MagicMock(deleted_count=deleted)


def _apply_update(document: Dict[str, Any], update: Dict[str, Any]) -> bool:
    """Apply $set / $unset in place; returns whether the document changed."""
    before = copy.deepcopy(document)
    for field, value in (update.get("$set") or {}).items():
        document[field] = value
    for field in update.get("$unset") or {}:
        document.pop(field, None)
    return document != before


class FakeCursor:
    """Async cursor over a snapshot of matching documents."""

    def __init__(self, documents: List[Dict[str, Any]]):
        self.documents = documents
        self._position = 0

    def sort(self, key, direction=1):
        keys = [(key, direction)] if isinstance(key, str) else list(key)
        for field, field_direction in reversed(keys):
            self.documents.sort(key=lambda d: d.get(field), reverse=field_direction == -1)
        return self

    def skip(self, count: int):
        self.documents = self.documents[count:]
        return self

    def limit(self, count: int):
        if count:
            self.documents = self.documents[:count]
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._position >= len(self.documents):
            raise StopAsyncIteration
        document = self.documents[self._position]
        self._position += 1
        return document

    async def to_list(self, length=None):
        return list(self.documents if length is None else self.documents[:length])


class FakeDatabase:
    """Database stand-in handing out one FakeCollection per name."""

    def __init__(self, name: str = "test_db"):
        self.name = name
        self.collections: Dict[str, FakeCollection] = {}
        self.get_collection = MagicMock(side_effect=self._get_collection)

    def _get_collection(self, name: str, **kwargs: Any) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def __getitem__(self, name: str) -> FakeCollection:
        return self._get_collection(name)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def fake_collection() -> FakeCollection:
    """Fresh fake collection holding only the _id_ index."""
    return FakeCollection("users")


@pytest.fixture
def fake_database() -> FakeDatabase:
    """Fake database creating collections on demand."""
    return FakeDatabase()


@pytest.fixture
def mock_mongo_client(fake_database: FakeDatabase) -> MagicMock:
    """Mock Motor client whose databases are FakeDatabase instances."""
    client = MagicMock()
    client.admin = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.return_value = fake_database
    client.close = MagicMock()
    return client


@pytest.fixture
def future() -> datetime:
    """A threshold one day in the future."""
    return datetime.now(timezone.utc) + timedelta(days=1)


@pytest.fixture
def past() -> datetime:
    """A threshold one day in the past."""
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()


@pytest.fixture(autouse=True)
def reset_logging_context():
    """Clear the boot id and model context between tests."""
    yield
    end_boot()


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables before each test."""
    env_vars_to_clear = [
        "MONGO_URI",
        "DB_NAME",
        "MONGO_MAX_POOL_SIZE",
        "MONGO_MIN_POOL_SIZE",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS",
        "MDB_MODELS_SYNC_INDEXES",
        "MDB_MODELS_RUN_MIGRATIONS",
        "MDB_MODELS_DROP_UNMANAGED_INDEXES",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    yield


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB container for integration tests.

    Session-scoped: the container starts once and is reused.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    try:
        container = MongoDbContainer("mongo:7.0")
        container.start()
    except Exception as e:  # noqa: BLE001 - Docker unavailable
        pytest.skip(f"MongoDB container could not be started: {e}")

    yield container
    container.stop()


@pytest.fixture
def mongodb_connection_string(mongodb_container) -> str:
    """Connection string of the test container."""
    return mongodb_container.get_connection_url()


@pytest.fixture
async def real_mongo_client(mongodb_connection_string):
    """Motor client connected to the test container."""
    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(mongodb_connection_string)
    await client.admin.command("ping")
    yield client
    client.close()


@pytest.fixture
async def real_mongo_db(real_mongo_client):
    """
    Unique database per test, dropped afterwards.
    """
    db_name = f"test_db_{os.getpid()}_{id(real_mongo_client)}"
    db = real_mongo_client[db_name]

    yield db

    await real_mongo_client.drop_database(db_name)
