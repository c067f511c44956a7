"""
Document store interface and core data structures.

The migration core is written against this contract; any store offering
these primitives can back it.

This module provides:
- IndexKey / SortSpec: Key pattern and sort order types
- IndexInfo: Description of an existing index
- WriteError: A per-document insert failure
- InsertManyResult: Result of a partial-failure tolerant bulk insert
- DocumentCollection: Abstract base class for a collection
- DocumentDatabase: Abstract base class for a database
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

Document = dict[str, Any]
"""A stored document."""

Filter = Mapping[str, Any]
"""A MongoDB-style query filter."""

IndexKey = tuple[str, Any]
"""A (field, direction) pair; direction is 1, -1 or "text"."""

SortSpec = Sequence[tuple[str, Any]]
"""Sort order as (field, direction) pairs; direction may be {"$meta": "textScore"}."""


@dataclass(frozen=True)
class IndexInfo:
    """
    Description of an existing index.

    Attributes:
        name: Index name
        keys: Key pattern as (field, direction) pairs
    """

    name: str
    keys: tuple[IndexKey, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "keys": {name: direction for name, direction in self.keys}}


@dataclass(frozen=True)
class WriteError:
    """
    A document rejected by a bulk insert.

    Attributes:
        index: Position of the document in the submitted batch
        code: Server error code
        message: Server error message
        document_id: ``_id`` of the rejected document
    """

    index: int
    code: int | None
    message: str
    document_id: Any = None


@dataclass(frozen=True)
class InsertManyResult:
    """
    Result of an unordered bulk insert.

    An insert failure for one document does not roll back the others.

    Attributes:
        inserted_count: Number of documents written
        write_errors: One entry per rejected document
    """

    inserted_count: int
    write_errors: tuple[WriteError, ...] = field(default_factory=tuple)

    @property
    def failed_count(self) -> int:
        return len(self.write_errors)


class DocumentCollection(ABC):
    """
    Abstract base class for a document collection.

    Implementations must:
    - Apply filters, sort and limit the way MongoDB does for the
      operators the migration uses
    - Insert unordered, reporting per-document failures instead of raising
    - Raise IndexAlreadyExistsError when an equivalent index exists under
      another name
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the collection."""
        pass

    @abstractmethod
    async def find(
        self,
        filter: Filter | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int = 0,
    ) -> list[Document]:
        """
        Return documents matching a filter.

        Args:
            filter: Query filter; None matches everything
            sort: Sort order
            limit: Maximum documents to return; 0 means no limit

        Returns:
            List of matching documents
        """
        pass

    @abstractmethod
    async def find_one(self, filter: Filter | None = None) -> Document | None:
        """Return the first matching document, or None."""
        pass

    @abstractmethod
    def stream(
        self,
        filter: Filter | None = None,
        *,
        batch_size: int = 100,
    ) -> AsyncIterator[list[Document]]:
        """
        Iterate over matching documents in batches.

        Args:
            filter: Query filter; None matches everything
            batch_size: Maximum documents per yielded batch

        Yields:
            Non-empty lists of documents
        """
        pass

    @abstractmethod
    async def count_documents(self, filter: Filter | None = None) -> int:
        """Count documents matching a filter."""
        pass

    @abstractmethod
    async def insert_many(
        self,
        documents: Sequence[Document],
        *,
        ordered: bool = False,
    ) -> InsertManyResult:
        """
        Insert documents, tolerating per-document failures.

        Args:
            documents: Documents to insert
            ordered: Stop at the first failure when True

        Returns:
            InsertManyResult with the inserted count and write errors
        """
        pass

    @abstractmethod
    async def create_index(
        self,
        keys: Sequence[IndexKey],
        *,
        name: str,
        background: bool = True,
    ) -> str:
        """
        Create an index.

        Args:
            keys: Key pattern
            name: Index name
            background: Build without blocking reads where supported

        Returns:
            The index name

        Raises:
            IndexAlreadyExistsError: If the key pattern is already indexed
                under a different name
            StorageError: For any other failure
        """
        pass

    @abstractmethod
    async def list_indexes(self) -> list[IndexInfo]:
        """List existing indexes, including the default _id index."""
        pass

    @abstractmethod
    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        """Run an aggregation pipeline and return all result documents."""
        pass


class DocumentDatabase(ABC):
    """
    Abstract base class for a database holding document collections.

    Collection handles are addressed by name; renaming a collection changes
    which documents a handle for a given name sees.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the database."""
        pass

    @abstractmethod
    def get_collection(self, name: str) -> DocumentCollection:
        """Return a handle for the named collection (which may not exist yet)."""
        pass

    def __getitem__(self, name: str) -> DocumentCollection:
        return self.get_collection(name)

    @abstractmethod
    async def list_collection_names(self) -> list[str]:
        pass

    async def collection_exists(self, name: str) -> bool:
        return name in await self.list_collection_names()

    @abstractmethod
    async def rename_collection(self, source: str, target: str) -> None:
        """
        Atomically rename a collection.

        Raises:
            NamespaceNotFoundError: If ``source`` does not exist
            NamespaceExistsError: If ``target`` already exists
        """
        pass

    @abstractmethod
    async def create_collection(self, name: str) -> DocumentCollection:
        """
        Create an empty collection.

        Raises:
            NamespaceExistsError: If the collection already exists
        """
        pass

    @abstractmethod
    async def drop_collection(self, name: str) -> None:
        """Drop a collection; dropping a missing collection is not an error."""
        pass


__all__ = [
    "Document",
    "Filter",
    "IndexKey",
    "SortSpec",
    "IndexInfo",
    "WriteError",
    "InsertManyResult",
    "DocumentCollection",
    "DocumentDatabase",
]
