"""Unit tests for the Mongo wrapper (collections mocked)."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from tftstat.db.document_store import DocumentStore, DuplicateDocumentError, StoreError


def make_store():
    collection = MagicMock()
    collection.count_documents = AsyncMock(return_value=1)
    collection.find_one = AsyncMock(return_value={"_id": "EUW1_1"})
    collection.insert_one = AsyncMock()
    collection.create_index = AsyncMock()
    db = MagicMock()
    db.__getitem__.return_value = collection
    return DocumentStore(db), db, collection


@pytest.mark.asyncio
class TestDocumentStore:
    async def test_count_filters_on_id(self):
        store, db, collection = make_store()

        assert await store.count_by_id("matches_v3", "EUW1_1") == 1
        db.__getitem__.assert_called_with("matches_v3")
        collection.count_documents.assert_awaited_once_with({"_id": "EUW1_1"}, limit=1)

    async def test_find_one(self):
        store, _, collection = make_store()

        assert await store.find_one_by_id("matches_v3", "EUW1_1") == {"_id": "EUW1_1"}
        collection.find_one.assert_awaited_once_with({"_id": "EUW1_1"})

    async def test_duplicate_insert(self):
        store, _, collection = make_store()
        collection.insert_one.side_effect = DuplicateKeyError("E11000")

        with pytest.raises(DuplicateDocumentError):
            await store.insert_one("matches_v3", {"_id": "EUW1_1"})

    async def test_driver_errors_become_store_errors(self):
        store, _, collection = make_store()
        collection.find_one.side_effect = ServerSelectionTimeoutError("no primary")

        with pytest.raises(StoreError):
            await store.find_one_by_id("matches_v3", "EUW1_1")

    async def test_ttl_index_on_expire_field(self):
        store, _, collection = make_store()

        await store.ensure_ttl_indexes(["summoners_v1", "matches_v3"])

        assert collection.create_index.await_count == 2
        collection.create_index.assert_awaited_with([("_documentExpire", 1)], expireAfterSeconds=0)
