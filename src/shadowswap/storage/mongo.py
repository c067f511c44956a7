"""
MongoDB document store backed by Motor.

Wraps ``motor.motor_asyncio`` collections so the migration core can run
against a real MongoDB deployment. Server errors the migration reacts to
are translated into the storage exceptions of ``shadowswap.exceptions``.

Example:
    >>> database = MotorDatabase.connect("mongodb://localhost:27017/catalog")
    >>> products = database["products"]
    >>> await products.count_documents()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import BulkWriteError, CollectionInvalid, ConfigurationError, OperationFailure

from shadowswap.exceptions import (
    IndexAlreadyExistsError,
    NamespaceExistsError,
    NamespaceNotFoundError,
    StorageError,
)
from shadowswap.storage.interface import (
    Document,
    DocumentCollection,
    DocumentDatabase,
    Filter,
    IndexInfo,
    IndexKey,
    InsertManyResult,
    SortSpec,
    WriteError,
)

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "catalog"

_INDEX_CONFLICT_CODES = frozenset({85})
_NAMESPACE_EXISTS_CODES = frozenset({48})
_NAMESPACE_NOT_FOUND_CODES = frozenset({26})


def translate_operation_failure(error: OperationFailure) -> StorageError:
    """Map a server OperationFailure onto the storage exception hierarchy."""
    message = str(error.details.get("errmsg", error)) if error.details else str(error)
    if error.code in _INDEX_CONFLICT_CODES:
        return IndexAlreadyExistsError(message)
    if error.code in _NAMESPACE_EXISTS_CODES:
        return NamespaceExistsError(message)
    if error.code in _NAMESPACE_NOT_FOUND_CODES:
        return NamespaceNotFoundError(message)
    return StorageError(message, code=error.code)


class MotorCollection(DocumentCollection):
    """DocumentCollection over an ``AsyncIOMotorCollection``."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    async def find(
        self,
        filter: Filter | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int = 0,
    ) -> list[Document]:
        cursor = self._collection.find(dict(filter or {}))
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        try:
            return await cursor.to_list(length=None)
        except OperationFailure as e:
            raise translate_operation_failure(e) from e

    async def find_one(self, filter: Filter | None = None) -> Document | None:
        return await self._collection.find_one(dict(filter or {}))

    async def stream(
        self,
        filter: Filter | None = None,
        *,
        batch_size: int = 100,
    ) -> AsyncIterator[list[Document]]:
        batch: list[Document] = []
        async for document in self._collection.find(dict(filter or {})).batch_size(batch_size):
            batch.append(document)
            if len(batch) >= batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    async def count_documents(self, filter: Filter | None = None) -> int:
        return await self._collection.count_documents(dict(filter or {}))

    async def insert_many(
        self,
        documents: Sequence[Document],
        *,
        ordered: bool = False,
    ) -> InsertManyResult:
        if not documents:
            return InsertManyResult(inserted_count=0)
        try:
            result = await self._collection.insert_many(list(documents), ordered=ordered)
        except BulkWriteError as bwe:
            details = bwe.details or {}
            errors = tuple(
                WriteError(
                    index=error.get("index", -1),
                    code=error.get("code"),
                    message=error.get("errmsg", ""),
                    document_id=(error.get("op") or {}).get("_id"),
                )
                for error in details.get("writeErrors", [])
            )
            return InsertManyResult(
                inserted_count=details.get("nInserted", 0),
                write_errors=errors,
            )
        return InsertManyResult(inserted_count=len(result.inserted_ids))

    async def create_index(
        self,
        keys: Sequence[IndexKey],
        *,
        name: str,
        background: bool = True,
    ) -> str:
        try:
            return await self._collection.create_index(
                list(keys), name=name, background=background
            )
        except OperationFailure as e:
            raise translate_operation_failure(e) from e

    async def list_indexes(self) -> list[IndexInfo]:
        indexes = []
        async for index in self._collection.list_indexes():
            indexes.append(IndexInfo(name=index["name"], keys=_key_pattern(index)))
        return indexes

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        try:
            return await self._collection.aggregate(list(pipeline)).to_list(length=None)
        except OperationFailure as e:
            raise translate_operation_failure(e) from e


def _key_pattern(index: Mapping[str, Any]) -> tuple[IndexKey, ...]:
    # Text indexes report their fields in "weights"; "key" holds _fts/_ftsx
    if "weights" in index:
        keys = [(k, v) for k, v in index["key"].items() if k not in ("_fts", "_ftsx")]
        keys.extend((name, "text") for name in sorted(index["weights"]))
        return tuple(keys)
    return tuple(index["key"].items())


class MotorDatabase(DocumentDatabase):
    """
    DocumentDatabase over an ``AsyncIOMotorDatabase``.

    Args:
        database: The Motor database handle
        client: Owning client, closed by ``close()`` when given
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        client: AsyncIOMotorClient | None = None,
    ) -> None:
        self._database = database
        self._client = client

    @classmethod
    def connect(cls, url: str, database_name: str | None = None) -> MotorDatabase:
        """
        Open a client and select a database.

        Args:
            url: MongoDB connection string
            database_name: Database name; defaults to the one in the URL,
                then to "catalog"
        """
        client: AsyncIOMotorClient = AsyncIOMotorClient(url)
        if database_name:
            database = client[database_name]
        else:
            try:
                database = client.get_default_database()
            except ConfigurationError:
                database = client[DEFAULT_DATABASE]
        logger.info("Connected to MongoDB database %s", database.name)
        return cls(database, client)

    @property
    def name(self) -> str:
        return self._database.name

    def get_collection(self, name: str) -> MotorCollection:
        return MotorCollection(self._database[name])

    async def list_collection_names(self) -> list[str]:
        return await self._database.list_collection_names()

    async def rename_collection(self, source: str, target: str) -> None:
        try:
            await self._database[source].rename(target)
        except OperationFailure as e:
            raise translate_operation_failure(e) from e

    async def create_collection(self, name: str) -> MotorCollection:
        try:
            collection = await self._database.create_collection(name)
        except CollectionInvalid as e:
            raise NamespaceExistsError(str(e)) from e
        except OperationFailure as e:
            raise translate_operation_failure(e) from e
        return MotorCollection(collection)

    async def drop_collection(self, name: str) -> None:
        await self._database.drop_collection(name)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


__all__ = [
    "DEFAULT_DATABASE",
    "MotorCollection",
    "MotorDatabase",
    "translate_operation_failure",
]
