"""
Unit tests for Model documents.

Tests conversion between instances and documents, the class-level query
operations, and save/update/delete against the fake collection.
"""

from dataclasses import dataclass, field

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.write_concern import WriteConcern

from mdb_models.core import Model, ModelCursor, ModelDescriptor
from mdb_models.exceptions import DocumentError


@dataclass
class User(Model):
    descriptor = ModelDescriptor(
        "users",
        indexes=[{"keys": [("email", 1)], "options": {"unique": True}}],
        write_concern={"w": "majority", "wtimeout": 5000},
    )

    email: str
    name: str = ""
    tags: list = field(default_factory=list)


@dataclass
class AuditEntry(Model):
    action: str = ""


@pytest.fixture
def users(fake_database):
    collection = fake_database["users"]
    collection.documents.extend(
        [
            {"_id": 1, "email": "ada@example.com", "name": "Ada"},
            {"_id": 2, "email": "grace@example.com", "name": "Grace", "legacy": True},
            {"_id": 3, "email": "alan@example.com", "name": "Alan"},
        ]
    )
    return collection


@pytest.mark.unit
class TestModelConversion:
    """Test to_document / from_document."""

    def test_default_descriptor(self):
        """Test that a subclass without a descriptor gets one from its class name."""
        assert AuditEntry.descriptor.collection_name == "audit_entries"
        assert User.descriptor.collection_name == "users"

    def test_to_document_maps_id(self):
        """Test that id is written as _id, first."""
        object_id = ObjectId()
        user = User(email="ada@example.com", id=object_id)

        document = user.to_document()

        assert list(document)[0] == "_id"
        assert document == {"_id": object_id, "email": "ada@example.com", "name": "", "tags": []}

    def test_to_document_without_id(self):
        """Test that an unset id is left out so the server can assign one."""
        assert "_id" not in User(email="ada@example.com").to_document()

    def test_from_document(self):
        """Test that _id becomes id and unknown fields are ignored."""
        user = User.from_document({"_id": 7, "email": "a@b.c", "legacy": True})

        assert user == User(email="a@b.c", id=7)

    def test_from_document_missing_field(self):
        """Test that a document lacking a required field raises DocumentError."""
        with pytest.raises(DocumentError) as exc_info:
            User.from_document({"_id": 7, "name": "no email"})

        assert exc_info.value.operation == "load"
        assert exc_info.value.collection_name == "users"

    def test_set_id(self):
        user = User(email="a@b.c")
        user.set_id(42)
        assert user.id == 42


@pytest.mark.unit
@pytest.mark.asyncio
class TestModelQueries:
    """Test class-level operations."""

    async def test_find(self, fake_database, users):
        """Test that find yields model instances."""
        cursor = User.find(fake_database, {"name": {"$in": ["Ada", "Alan"]}})

        assert isinstance(cursor, ModelCursor)
        found = [user async for user in cursor]
        assert [user.email for user in found] == ["ada@example.com", "alan@example.com"]
        assert all(isinstance(user, User) for user in found)

    async def test_find_sort_skip_limit(self, fake_database, users):
        """Test that cursor modifiers pass through to the driver cursor."""
        found = await User.find(fake_database).sort("name", -1).skip(1).limit(1).to_list()

        assert [user.name for user in found] == ["Alan"]

    async def test_find_uses_model_collection(self, fake_database, users):
        """Test that queries go through the descriptor's collection handle."""
        await User.find(fake_database).to_list()

        call = fake_database.get_collection.call_args
        assert call.args == ("users",)
        assert call.kwargs["write_concern"] == User.descriptor.write_concern

    async def test_find_one(self, fake_database, users):
        user = await User.find_one(fake_database, {"email": "grace@example.com"})

        assert user == User(email="grace@example.com", name="Grace", id=2)

    async def test_find_one_missing(self, fake_database, users):
        assert await User.find_one(fake_database, {"email": "nobody@example.com"}) is None

    async def test_find_one_and_delete(self, fake_database, users):
        """Test that the deleted document is returned as an instance."""
        user = await User.find_one_and_delete(fake_database, {"_id": 1})

        assert user.email == "ada@example.com"
        assert [d["_id"] for d in users.documents] == [2, 3]

    async def test_find_one_and_replace_with_instance(self, fake_database, users):
        """Test that a Model replacement is converted to a document."""
        replacement = User(email="ada@lovelace.dev", name="Ada L.")

        before = await User.find_one_and_replace(fake_database, {"_id": 1}, replacement)

        assert before.email == "ada@example.com"
        assert users.documents[0] == {
            "_id": 1,
            "email": "ada@lovelace.dev",
            "name": "Ada L.",
            "tags": [],
        }

    async def test_find_one_and_update(self, fake_database, users):
        after = await User.find_one_and_update(
            fake_database,
            {"_id": 3},
            {"$set": {"name": "Alan T."}},
            return_document=ReturnDocument.AFTER,
        )

        assert after.name == "Alan T."

    async def test_delete_many(self, fake_database, users):
        result = await User.delete_many(fake_database, {"name": {"$ne": "Ada"}})

        assert result.deleted_count == 2
        assert [d["_id"] for d in users.documents] == [1]


@pytest.mark.unit
@pytest.mark.asyncio
class TestModelSave:
    """Test save()."""

    async def test_save_new_generates_id(self, fake_database):
        """Test that saving without id or filter inserts with a fresh ObjectId."""
        user = User(email="new@example.com")

        await user.save(fake_database)

        collection = fake_database["users"]
        assert isinstance(user.id, ObjectId)
        assert collection.documents == [
            {"_id": user.id, "email": "new@example.com", "name": "", "tags": []}
        ]

    async def test_save_existing_replaces(self, fake_database, users):
        """Test that an instance with an id replaces its document."""
        user = await User.find_one(fake_database, {"_id": 2})
        user.name = "Grace H."

        await user.save(fake_database)

        assert users.documents[1] == {
            "_id": 2,
            "email": "grace@example.com",
            "name": "Grace H.",
            "tags": [],
        }

    async def test_save_with_filter_assigns_id(self, fake_database, users):
        """Test that saving by filter picks up the id of the matched document."""
        user = User(email="alan@example.com", name="Alan Turing")

        await user.save(fake_database, filter={"email": "alan@example.com"})

        assert user.id == 3
        assert len(users.documents) == 3
        assert users.documents[2]["name"] == "Alan Turing"

    async def test_save_is_journaled(self, fake_database):
        """Test that save keeps the model's write concern and forces journaling."""
        await User(email="new@example.com").save(fake_database)

        fake_database["users"].with_options.assert_called_once_with(
            write_concern=WriteConcern(w="majority", wtimeout=5000, j=True)
        )

    async def test_save_without_returned_document(self, fake_database):
        """Test that a missing server response is a DocumentError."""
        fake_database["users"].find_one_and_replace.side_effect = None
        fake_database["users"].find_one_and_replace.return_value = None

        with pytest.raises(DocumentError, match="did not return"):
            await User(email="new@example.com").save(fake_database)


@pytest.mark.unit
@pytest.mark.asyncio
class TestModelUpdateDelete:
    """Test update() and delete()."""

    async def test_update(self, fake_database, users):
        """Test that update targets the instance id and returns a new instance."""
        user = await User.find_one(fake_database, {"_id": 1})

        updated = await user.update(
            fake_database,
            {"$set": {"name": "Countess"}},
            return_document=ReturnDocument.AFTER,
        )

        assert updated.name == "Countess"
        assert user.name == "Ada"
        assert users.documents[0]["name"] == "Countess"

    async def test_update_filter_narrowed_to_id(self, fake_database, users):
        """Test that an extra filter is combined with the id."""
        user = await User.find_one(fake_database, {"_id": 1})

        with pytest.raises(DocumentError, match="No document matched"):
            await user.update(fake_database, {"$set": {"name": "x"}}, filter={"name": "Grace"})

        assert users.documents[1]["name"] == "Grace"

    async def test_update_requires_id(self, fake_database):
        with pytest.raises(DocumentError, match="has no id"):
            await User(email="a@b.c").update(fake_database, {"$set": {"name": "x"}})

    async def test_delete(self, fake_database, users):
        user = await User.find_one(fake_database, {"_id": 2})

        result = await user.delete(fake_database)

        assert result.deleted_count == 1
        assert [d["_id"] for d in users.documents] == [1, 3]

    async def test_delete_requires_id(self, fake_database):
        with pytest.raises(DocumentError) as exc_info:
            await User(email="a@b.c").delete(fake_database)

        assert exc_info.value.operation == "delete"
