"""
Document store backends.

- DocumentDatabase / DocumentCollection: the contract the migration uses
- InMemoryDatabase: in-process backend for tests and dry runs
- MotorDatabase: MongoDB backend (see ``shadowswap.storage.mongo``)
"""

from shadowswap.storage.in_memory import InMemoryCollection, InMemoryDatabase
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

__all__ = [
    "Document",
    "DocumentCollection",
    "DocumentDatabase",
    "Filter",
    "IndexInfo",
    "IndexKey",
    "InsertManyResult",
    "SortSpec",
    "WriteError",
    "InMemoryCollection",
    "InMemoryDatabase",
]
