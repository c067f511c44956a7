"""
In-memory document store implementation.

Useful for testing, dry runs and development. Not suitable for production
as all documents are lost when the process terminates.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from bson import ObjectId

from shadowswap.exceptions import (
    DuplicateKeyError,
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
from shadowswap.storage.query import matches, run_pipeline, sort_documents, text_score

_ID_INDEX = IndexInfo(name="_id_", keys=(("_id", 1),))


@dataclass
class _CollectionData:
    documents: list[Document] = field(default_factory=list)
    ids: set[str] = field(default_factory=set)
    indexes: dict[str, IndexInfo] = field(default_factory=lambda: {"_id_": _ID_INDEX})

    @property
    def text_fields(self) -> list[str]:
        return [
            name
            for index in self.indexes.values()
            for name, direction in index.keys
            if direction == "text"
        ]


def _id_key(value: Any) -> str:
    return f"{type(value).__name__}:{value!r}"


class InMemoryCollection(DocumentCollection):
    """
    Handle for a named collection of an InMemoryDatabase.

    The handle resolves its data by name on every call, so a handle keeps
    pointing at whatever collection currently carries its name.

    Documents are deep-copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self, database: InMemoryDatabase, name: str) -> None:
        self._database = database
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _data(self) -> _CollectionData | None:
        return self._database._collections.get(self._name)

    def _data_or_create(self) -> _CollectionData:
        return self._database._collections.setdefault(self._name, _CollectionData())

    def _select(self, filter: Filter | None) -> tuple[list[Document], dict[int, float]]:
        data = self._data()
        if data is None:
            if filter and "$text" in filter:
                raise StorageError("text index required for $text query", code=27)
            return [], {}
        text_fields = data.text_fields
        selected = [d for d in data.documents if matches(d, filter, text_fields)]
        scores: dict[int, float] = {}
        if filter and "$text" in filter:
            scores = {id(d): text_score(d, filter["$text"], text_fields) for d in selected}
        return selected, scores

    async def find(
        self,
        filter: Filter | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int = 0,
    ) -> list[Document]:
        async with self._database._lock:
            selected, scores = self._select(filter)
            if sort:
                selected = sort_documents(selected, sort, scores)
            if limit:
                selected = selected[:limit]
            return copy.deepcopy(selected)

    async def find_one(self, filter: Filter | None = None) -> Document | None:
        found = await self.find(filter, limit=1)
        return found[0] if found else None

    async def stream(
        self,
        filter: Filter | None = None,
        *,
        batch_size: int = 100,
    ) -> AsyncIterator[list[Document]]:
        documents = await self.find(filter)
        for start in range(0, len(documents), batch_size):
            yield documents[start : start + batch_size]
            # Yield control like a cursor round trip would
            await asyncio.sleep(0)

    async def count_documents(self, filter: Filter | None = None) -> int:
        async with self._database._lock:
            selected, _ = self._select(filter)
            return len(selected)

    async def insert_many(
        self,
        documents: Sequence[Document],
        *,
        ordered: bool = False,
    ) -> InsertManyResult:
        async with self._database._lock:
            data = self._data_or_create()
            inserted = 0
            errors: list[WriteError] = []
            for position, document in enumerate(documents):
                stored = copy.deepcopy(dict(document))
                stored.setdefault("_id", ObjectId())
                key = _id_key(stored["_id"])
                if key in data.ids:
                    error = DuplicateKeyError(f"E11000 duplicate key error: _id {stored['_id']!r}")
                    errors.append(
                        WriteError(position, error.code, str(error), document_id=stored["_id"])
                    )
                    if ordered:
                        break
                    continue
                data.ids.add(key)
                data.documents.append(stored)
                inserted += 1
            return InsertManyResult(inserted_count=inserted, write_errors=tuple(errors))

    async def create_index(
        self,
        keys: Sequence[IndexKey],
        *,
        name: str,
        background: bool = True,
    ) -> str:
        key_pattern = tuple((field_name, direction) for field_name, direction in keys)
        async with self._database._lock:
            data = self._data_or_create()
            existing = data.indexes.get(name)
            if existing is not None:
                if existing.keys == key_pattern:
                    return name
                raise StorageError(
                    f"An existing index has the same name as the requested index: {name}",
                    code=86,
                )
            for index in data.indexes.values():
                if index.keys == key_pattern:
                    raise IndexAlreadyExistsError(
                        f"Index already exists with a different name: {index.name}"
                    )
            is_text = any(direction == "text" for _, direction in key_pattern)
            if is_text and data.text_fields:
                raise IndexAlreadyExistsError("only one text index is allowed per collection")
            data.indexes[name] = IndexInfo(name=name, keys=key_pattern)
            self._database.background_index_requests.append((self._name, name, background))
            return name

    async def list_indexes(self) -> list[IndexInfo]:
        async with self._database._lock:
            data = self._data()
            if data is None:
                return []
            return list(data.indexes.values())

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        async with self._database._lock:
            data = self._data()
            documents = data.documents if data is not None else []
            text_fields = data.text_fields if data is not None else None
            return copy.deepcopy(run_pipeline(documents, pipeline, text_fields))


class InMemoryDatabase(DocumentDatabase):
    """
    In-memory implementation of the document database.

    Example:
        >>> db = InMemoryDatabase()
        >>> products = db["products"]
        >>> await products.insert_many([{"_id": 1, "name": "Ring"}])
        >>> await db.rename_collection("products", "products_backup")

    Attributes:
        background_index_requests: (collection, index, background) for every
            index created, so tests can check the requested build mode
    """

    def __init__(self, name: str = "test") -> None:
        self._name = name
        self._collections: dict[str, _CollectionData] = {}
        self._lock = asyncio.Lock()
        self.background_index_requests: list[tuple[str, str, bool]] = []

    @property
    def name(self) -> str:
        return self._name

    def get_collection(self, name: str) -> InMemoryCollection:
        return InMemoryCollection(self, name)

    async def list_collection_names(self) -> list[str]:
        async with self._lock:
            return list(self._collections)

    async def rename_collection(self, source: str, target: str) -> None:
        async with self._lock:
            if source not in self._collections:
                raise NamespaceNotFoundError(f"source namespace does not exist: {source}")
            if target in self._collections:
                raise NamespaceExistsError(f"target namespace exists: {target}")
            self._collections[target] = self._collections.pop(source)

    async def create_collection(self, name: str) -> InMemoryCollection:
        async with self._lock:
            if name in self._collections:
                raise NamespaceExistsError(f"collection already exists: {name}")
            self._collections[name] = _CollectionData()
        return self.get_collection(name)

    async def drop_collection(self, name: str) -> None:
        async with self._lock:
            self._collections.pop(name, None)

    async def seed(self, name: str, documents: Sequence[Document]) -> None:
        """Insert documents into a collection, creating it if necessary."""
        await self.get_collection(name).insert_many(documents)


__all__ = [
    "InMemoryCollection",
    "InMemoryDatabase",
]
