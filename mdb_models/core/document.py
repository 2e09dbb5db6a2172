"""
Model documents.

Model is a dataclass base for the documents stored in a model's collection.
Class-level operations (find, find_one, find_one_and_*, delete_many) and
instance operations (save, update, delete) go through the collection handle
of the bound ModelDescriptor, so the model's read concern, write concern and
read preference apply to them.

This module is part of MDB_MODELS.
"""

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorCursor, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.results import DeleteResult
from pymongo.write_concern import WriteConcern

from ..constants import PRIMARY_KEY_FIELD
from ..exceptions import DocumentError
from .model import ModelDescriptor

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="Model")


class ModelCursor:
    """
    Cursor yielding model instances instead of raw documents.

    Example:
        async for user in User.find(db, {"active": True}).sort("email"):
            print(user.email)
    """

    def __init__(self, cursor: AsyncIOMotorCursor, model_class: type["Model"]) -> None:
        self._cursor = cursor
        self._model_class = model_class

    def sort(self, *args: Any, **kwargs: Any) -> "ModelCursor":
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count: int) -> "ModelCursor":
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count: int) -> "ModelCursor":
        self._cursor = self._cursor.limit(count)
        return self

    def __aiter__(self) -> "ModelCursor":
        return self

    async def __anext__(self) -> "Model":
        document = await anext(self._cursor)
        return self._model_class.from_document(document)

    async def to_list(self, length: int | None = None) -> list["Model"]:
        documents = await self._cursor.to_list(length)
        return [self._model_class.from_document(document) for document in documents]


@dataclass
class Model:
    """
    Base class for documents stored in a model's collection.

    Subclasses are dataclasses. The ``descriptor`` class attribute binds the
    ModelDescriptor; when a subclass does not set one, a descriptor with a
    collection name derived from the class name is created (``UserProfile``
    is stored in ``user_profiles``). ``id`` maps to the document's ``_id``.

    Example:
        @dataclass
        class User(Model):
            descriptor = ModelDescriptor(
                "users",
                indexes=[{"keys": [("email", 1)], "options": {"unique": True}}],
            )

            email: str
            name: str = ""

        user = User(email="ada@example.com")
        await user.save(db)
        found = await User.find_one(db, {"email": "ada@example.com"})
    """

    descriptor: ClassVar[ModelDescriptor]

    id: Any = field(default=None, kw_only=True)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "descriptor" not in cls.__dict__:
            cls.descriptor = ModelDescriptor.for_class(cls)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def set_id(self, value: Any) -> None:
        self.id = value

    def to_document(self) -> dict[str, Any]:
        """Document for this instance; ``_id`` is left out while ``id`` is unset."""
        document = dataclasses.asdict(self)
        object_id = document.pop("id")
        if object_id is not None:
            document = {PRIMARY_KEY_FIELD: object_id, **document}
        return document

    @classmethod
    def from_document(cls: type[M], document: Mapping[str, Any]) -> M:
        """
        Build an instance from a stored document. Unknown fields are ignored.

        Raises:
            DocumentError: If required fields are missing
        """
        field_names = {f.name for f in dataclasses.fields(cls) if f.name != "id"}
        data = {key: value for key, value in document.items() if key in field_names}
        try:
            return cls(**data, id=document.get(PRIMARY_KEY_FIELD))
        except TypeError as e:
            raise DocumentError(
                f"Cannot load {cls.__name__} from document: {e}",
                collection_name=cls.descriptor.collection_name,
                operation="load",
            ) from e

    @classmethod
    def _load(cls: type[M], document: Mapping[str, Any] | None) -> M | None:
        return None if document is None else cls.from_document(document)

    # ------------------------------------------------------------------
    # Collection access
    # ------------------------------------------------------------------

    @classmethod
    def collection(cls, db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
        """Collection handle with the model's concerns applied."""
        return cls.descriptor.collection(db)

    @classmethod
    def _journaled_collection(cls, db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
        # save/update need the written document back, so journaling is forced on
        concern = cls.descriptor.write_concern
        options = {k: v for k, v in (concern.document if concern else {}).items() if k != "fsync"}
        options["j"] = True
        return cls.collection(db).with_options(write_concern=WriteConcern(**options))

    @classmethod
    def find(
        cls, db: AsyncIOMotorDatabase, filter: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> ModelCursor:
        """Cursor over every instance matching filter; kwargs go to Collection.find."""
        return ModelCursor(cls.collection(db).find(dict(filter or {}), **kwargs), cls)

    @classmethod
    async def find_one(
        cls: type[M],
        db: AsyncIOMotorDatabase,
        filter: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> M | None:
        document = await cls.collection(db).find_one(dict(filter or {}), **kwargs)
        return cls._load(document)

    @classmethod
    async def find_one_and_delete(
        cls: type[M], db: AsyncIOMotorDatabase, filter: Mapping[str, Any], **kwargs: Any
    ) -> M | None:
        """Delete one matching document and return it."""
        document = await cls.collection(db).find_one_and_delete(dict(filter), **kwargs)
        return cls._load(document)

    @classmethod
    async def find_one_and_replace(
        cls: type[M],
        db: AsyncIOMotorDatabase,
        filter: Mapping[str, Any],
        replacement: "Model | Mapping[str, Any]",
        **kwargs: Any,
    ) -> M | None:
        """
        Replace one matching document. Returns the original document unless
        ``return_document=ReturnDocument.AFTER`` is passed.
        """
        if isinstance(replacement, Model):
            replacement = replacement.to_document()
        document = await cls.collection(db).find_one_and_replace(
            dict(filter), dict(replacement), **kwargs
        )
        return cls._load(document)

    @classmethod
    async def find_one_and_update(
        cls: type[M],
        db: AsyncIOMotorDatabase,
        filter: Mapping[str, Any],
        update: Mapping[str, Any] | list,
        **kwargs: Any,
    ) -> M | None:
        document = await cls.collection(db).find_one_and_update(dict(filter), update, **kwargs)
        return cls._load(document)

    @classmethod
    async def delete_many(
        cls, db: AsyncIOMotorDatabase, filter: Mapping[str, Any], **kwargs: Any
    ) -> DeleteResult:
        return await cls.collection(db).delete_many(dict(filter), **kwargs)

    # ------------------------------------------------------------------
    # Instance operations
    # ------------------------------------------------------------------

    def _require_id(self, operation: str) -> Any:
        if self.id is None:
            raise DocumentError(
                f"{type(self).__name__} has no id; save it before calling {operation}()",
                collection_name=self.descriptor.collection_name,
                operation=operation,
            )
        return self.id

    async def save(
        self, db: AsyncIOMotorDatabase, filter: Mapping[str, Any] | None = None
    ) -> None:
        """
        Replace the stored document with this instance, inserting it if missing.

        With an id, the document with that id is targeted. Without an id and
        without a filter, a new ObjectId is generated first. Without an id but
        with a filter, the first document matching the filter is replaced
        (useful for upserting on a unique key) and the id the server reports
        is assigned to the instance.

        Raises:
            DocumentError: If the server returns no document
        """
        collection_name = self.descriptor.collection_name
        assign_id = False
        if self.id is not None:
            query = {PRIMARY_KEY_FIELD: self.id}
        elif filter is None:
            self.id = ObjectId()
            query = {PRIMARY_KEY_FIELD: self.id}
        else:
            query = dict(filter)
            assign_id = True

        saved = await self._journaled_collection(db).find_one_and_replace(
            query, self.to_document(), upsert=True, return_document=ReturnDocument.AFTER
        )
        if saved is None:
            raise DocumentError(
                "Server did not return the saved document",
                collection_name=collection_name,
                operation="save",
            )
        if assign_id:
            if PRIMARY_KEY_FIELD not in saved:
                raise DocumentError(
                    "Server did not return the id of the saved document",
                    collection_name=collection_name,
                    operation="save",
                )
            self.id = saved[PRIMARY_KEY_FIELD]
        logger.debug(f"[{collection_name}] Saved {type(self).__name__} id={self.id}")

    async def update(
        self: M,
        db: AsyncIOMotorDatabase,
        update: Mapping[str, Any] | list,
        filter: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> M:
        """
        Apply update to this instance's document and return the result as a
        new instance.

        The filter is always narrowed to this instance's id. Returns the
        document as it was before the update unless
        ``return_document=ReturnDocument.AFTER`` is passed.

        Raises:
            DocumentError: If the instance has no id or no document matched
        """
        object_id = self._require_id("update")
        query = {**dict(filter or {}), PRIMARY_KEY_FIELD: object_id}
        document = await self._journaled_collection(db).find_one_and_update(
            query, update, **kwargs
        )
        if document is None:
            raise DocumentError(
                f"No document matched {type(self).__name__} id={object_id}",
                collection_name=self.descriptor.collection_name,
                operation="update",
            )
        return self.from_document(document)

    async def delete(self, db: AsyncIOMotorDatabase) -> DeleteResult:
        """
        Delete this instance's document by id.

        Raises:
            DocumentError: If the instance has no id
        """
        object_id = self._require_id("delete")
        return await self.collection(db).delete_one({PRIMARY_KEY_FIELD: object_id})
