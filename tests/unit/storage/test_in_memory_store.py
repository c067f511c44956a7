"""
Unit tests for InMemoryDatabase and InMemoryCollection.

Tests cover:
- find / find_one / count_documents with filters, sort and limit
- Batched streaming
- Unordered inserts with duplicate key reporting
- Index creation semantics (idempotence, conflicts, text index)
- Aggregation pipelines
- Collection rename, create and drop
"""

import pytest
import pytest_asyncio

from shadowswap.exceptions import (
    IndexAlreadyExistsError,
    NamespaceExistsError,
    NamespaceNotFoundError,
    StorageError,
)
from shadowswap.storage import InMemoryDatabase, IndexInfo


@pytest.fixture
def products():
    return [
        {"_id": 1, "name": "Gold Ring", "price": 300, "tags": ["gold", "ring"], "stock": True},
        {"_id": 2, "name": "Silver Necklace", "price": 120, "tags": ["silver"], "stock": False},
        {"_id": 3, "name": "Platinum Ring", "price": 900, "tags": ["platinum", "ring"]},
    ]


@pytest_asyncio.fixture
async def collection(database: InMemoryDatabase, products):
    await database.seed("items", products)
    return database["items"]


class TestFind:
    """Tests for reads."""

    @pytest.mark.asyncio
    async def test_find_all(self, collection):
        assert [d["_id"] for d in await collection.find()] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_find_with_range_filter(self, collection):
        found = await collection.find({"price": {"$gte": 200, "$lte": 1000}})
        assert [d["_id"] for d in found] == [1, 3]

    @pytest.mark.asyncio
    async def test_array_field_equality(self, collection):
        found = await collection.find({"tags": "ring"})
        assert [d["_id"] for d in found] == [1, 3]

    @pytest.mark.asyncio
    async def test_exists(self, collection):
        assert await collection.count_documents({"stock": {"$exists": False}}) == 1

    @pytest.mark.asyncio
    async def test_sort_and_limit(self, collection):
        found = await collection.find({}, sort=[("price", -1)], limit=2)
        assert [d["_id"] for d in found] == [3, 1]

    @pytest.mark.asyncio
    async def test_find_one(self, collection):
        assert (await collection.find_one({"_id": 2}))["name"] == "Silver Necklace"
        assert await collection.find_one({"_id": 99}) is None

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, collection):
        document = await collection.find_one({"_id": 1})
        document["name"] = "changed"
        assert (await collection.find_one({"_id": 1}))["name"] == "Gold Ring"

    @pytest.mark.asyncio
    async def test_missing_collection_is_empty(self, database):
        assert await database["nothing"].find() == []
        assert await database["nothing"].count_documents() == 0

    @pytest.mark.asyncio
    async def test_unsupported_operator(self, collection):
        with pytest.raises(StorageError):
            await collection.find({"price": {"$regex": "1"}})


class TestStream:
    """Tests for batched iteration."""

    @pytest.mark.asyncio
    async def test_batches(self, database):
        await database.seed("many", [{"_id": i} for i in range(60)])
        sizes = [len(batch) async for batch in database["many"].stream(batch_size=25)]
        assert sizes == [25, 25, 10]

    @pytest.mark.asyncio
    async def test_empty_collection_yields_nothing(self, database):
        assert [batch async for batch in database["none"].stream()] == []


class TestInsertMany:
    """Tests for unordered inserts."""

    @pytest.mark.asyncio
    async def test_duplicates_are_reported_not_raised(self, collection):
        result = await collection.insert_many([{"_id": 2}, {"_id": 4}, {"_id": 1}])

        assert result.inserted_count == 1
        assert result.failed_count == 2
        assert [e.document_id for e in result.write_errors] == [2, 1]
        assert [e.index for e in result.write_errors] == [0, 2]
        assert all(e.code == 11000 for e in result.write_errors)

    @pytest.mark.asyncio
    async def test_ordered_stops_at_first_error(self, collection):
        result = await collection.insert_many([{"_id": 5}, {"_id": 1}, {"_id": 6}], ordered=True)
        assert result.inserted_count == 1
        assert await collection.count_documents({"_id": 6}) == 0

    @pytest.mark.asyncio
    async def test_generated_object_id(self, database):
        from bson import ObjectId

        await database["fresh"].insert_many([{"name": "no id"}])
        document = await database["fresh"].find_one()
        assert isinstance(document["_id"], ObjectId)


class TestIndexes:
    """Tests for index management."""

    @pytest.mark.asyncio
    async def test_default_id_index(self, collection):
        assert await collection.list_indexes() == [IndexInfo("_id_", (("_id", 1),))]

    @pytest.mark.asyncio
    async def test_create_is_idempotent_by_name(self, database, collection):
        await collection.create_index([("price", 1)], name="price_1")
        await collection.create_index([("price", 1)], name="price_1")
        names = [i.name for i in await collection.list_indexes()]
        assert names == ["_id_", "price_1"]
        assert database.background_index_requests == [("items", "price_1", True)]

    @pytest.mark.asyncio
    async def test_same_keys_other_name(self, collection):
        await collection.create_index([("price", 1)], name="price_1")
        with pytest.raises(IndexAlreadyExistsError):
            await collection.create_index([("price", 1)], name="by_price")

    @pytest.mark.asyncio
    async def test_same_name_other_keys(self, collection):
        await collection.create_index([("price", 1)], name="idx")
        with pytest.raises(StorageError) as exc_info:
            await collection.create_index([("name", 1)], name="idx")
        assert not isinstance(exc_info.value, IndexAlreadyExistsError)

    @pytest.mark.asyncio
    async def test_text_search_requires_text_index(self, collection):
        with pytest.raises(StorageError):
            await collection.find({"$text": {"$search": "ring"}})

    @pytest.mark.asyncio
    async def test_text_search_ranks_by_score(self, collection):
        await collection.create_index([("name", "text"), ("tags", "text")], name="text")
        found = await collection.find(
            {"$text": {"$search": "platinum ring"}},
            sort=[("score", {"$meta": "textScore"})],
        )
        assert [d["_id"] for d in found] == [3, 1]

    @pytest.mark.asyncio
    async def test_only_one_text_index(self, collection):
        await collection.create_index([("name", "text")], name="text_a")
        with pytest.raises(IndexAlreadyExistsError):
            await collection.create_index([("tags", "text")], name="text_b")


class TestAggregate:
    """Tests for aggregation pipelines."""

    @pytest.mark.asyncio
    async def test_group_and_sort(self, database):
        await database.seed(
            "metals",
            [{"m": "gold"}, {"m": "gold"}, {"m": "silver"}, {}],
        )
        rows = await database["metals"].aggregate(
            [{"$group": {"_id": "$m", "count": {"$sum": 1}}}, {"$sort": {"count": -1}}]
        )
        assert rows[0] == {"_id": "gold", "count": 2}
        assert {"_id": None, "count": 1} in rows

    @pytest.mark.asyncio
    async def test_project_expressions(self, database):
        await database.seed("prices", [{"p": -1}, {"p": 0}, {"p": "x"}, {"p": 5}])
        rows = await database["prices"].aggregate(
            [
                {"$project": {"neg": {"$and": [{"$isNumber": "$p"}, {"$lt": ["$p", 0]}]}}},
                {"$group": {"_id": None, "neg": {"$sum": {"$cond": ["$neg", 1, 0]}}}},
            ]
        )
        assert rows == [{"_id": None, "neg": 1}]

    @pytest.mark.asyncio
    async def test_unknown_stage(self, collection):
        with pytest.raises(StorageError):
            await collection.aggregate([{"$lookup": {}}])


class TestCollections:
    """Tests for database level operations."""

    @pytest.mark.asyncio
    async def test_rename_moves_documents_and_indexes(self, database, collection):
        await collection.create_index([("price", 1)], name="price_1")
        await database.rename_collection("items", "renamed")

        assert await database.list_collection_names() == ["renamed"]
        assert await database["renamed"].count_documents() == 3
        assert "price_1" in [i.name for i in await database["renamed"].list_indexes()]
        # Handles resolve by name
        assert await collection.count_documents() == 0

    @pytest.mark.asyncio
    async def test_rename_missing_source(self, database):
        with pytest.raises(NamespaceNotFoundError):
            await database.rename_collection("missing", "other")

    @pytest.mark.asyncio
    async def test_rename_onto_existing_target(self, database, collection):
        await database.create_collection("taken")
        with pytest.raises(NamespaceExistsError):
            await database.rename_collection("items", "taken")

    @pytest.mark.asyncio
    async def test_create_existing(self, database, collection):
        with pytest.raises(NamespaceExistsError):
            await database.create_collection("items")

    @pytest.mark.asyncio
    async def test_drop_is_idempotent(self, database, collection):
        await database.drop_collection("items")
        await database.drop_collection("items")
        assert await database.collection_exists("items") is False
