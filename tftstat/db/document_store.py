# db/document_store.py – accès MongoDB (pymongo async)

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from tftstat.models.documents import EXPIRE

log = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a document-store operation fails."""
    pass


class DuplicateDocumentError(StoreError):
    """Raised when a document with the same _id already exists."""
    pass


def create_client(url: str, app_name: str) -> AsyncMongoClient:
    """Shared client; datetimes come back timezone-aware (UTC)."""
    return AsyncMongoClient(url, appname=app_name, tz_aware=True)


class DocumentStore:
    """
    Thin wrapper over one Mongo database.

    Only the three operations the crawler needs are exposed; documents are
    never updated or deleted here (expiry is the TTL index's job).
    """

    def __init__(self, db: AsyncDatabase):
        self._db = db

    async def count_by_id(self, collection: str, doc_id: str) -> int:
        try:
            return await self._db[collection].count_documents({"_id": doc_id}, limit=1)
        except PyMongoError as e:
            raise StoreError(f"count {collection}/{doc_id} failed: {e}") from e

    async def find_one_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._db[collection].find_one({"_id": doc_id})
        except PyMongoError as e:
            raise StoreError(f"find {collection}/{doc_id} failed: {e}") from e

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> None:
        try:
            await self._db[collection].insert_one(document)
        except DuplicateKeyError as e:
            raise DuplicateDocumentError(f"{collection}/{document.get('_id')} already stored") from e
        except PyMongoError as e:
            raise StoreError(f"insert {collection}/{document.get('_id')} failed: {e}") from e

    async def ensure_ttl_indexes(self, collections: Iterable[str]) -> None:
        """TTL index on _documentExpire: Mongo drops each document once its date passes."""
        for name in collections:
            try:
                await self._db[name].create_index([(EXPIRE, ASCENDING)], expireAfterSeconds=0)
            except PyMongoError as e:
                raise StoreError(f"TTL index on {name} failed: {e}") from e
            log.info("TTL index ready on %s.%s", name, EXPIRE)
