"""
JSON backup artifacts of the source collection.

The artifact is written as relaxed extended JSON (``bson.json_util``) so
ObjectIds and datetimes survive a restore. After writing, the file is read
back and its product count is compared with the live collection; a
mismatch fails the backup.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bson import json_util

from shadowswap.config import MigrationConfig
from shadowswap.exceptions import BackupError, BackupVerificationError
from shadowswap.observability import (
    ATTR_DOCUMENT_COUNT,
    ATTR_SOURCE_COLLECTION,
    Tracer,
    create_tracer,
)
from shadowswap.storage.interface import Document, DocumentCollection, DocumentDatabase

logger = logging.getLogger(__name__)

BACKUP_VERSION = "pre-migration-backup"
BACKUP_PREFIX = "migration-backup-"

_JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS


def backup_filename(created_at: datetime) -> str:
    """``migration-backup-<timestamp>.json`` with a filesystem-safe timestamp."""
    stamp = created_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    millis = created_at.microsecond // 1000
    return f"{BACKUP_PREFIX}{stamp}-{millis:03d}Z.json"


@dataclass(frozen=True)
class BackupArtifact:
    """
    A verified backup file.

    Attributes:
        path: Location of the artifact
        product_count: Number of products it holds
        size_mb: File size in megabytes
        created_at: When the backup was taken
    """

    path: Path
    product_count: int
    size_mb: float
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "backupPath": str(self.path),
            "productCount": self.product_count,
            "size": round(self.size_mb, 2),
            "createdAt": self.created_at.isoformat(),
        }


class BackupManager:
    """
    Writes, verifies and restores backup artifacts.

    Args:
        directory: Directory receiving the artifacts
        clock: Callable returning the current time (UTC)
        tracer: Optional custom Tracer
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        directory: str | Path = "backups",
        *,
        clock: Callable[[], datetime] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self.directory = Path(directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def create_backup(
        self,
        collection: DocumentCollection,
        config: MigrationConfig | None = None,
    ) -> BackupArtifact:
        """
        Dump the full collection to a timestamped artifact and verify it.

        Args:
            collection: Collection to back up
            config: Migration configuration recorded in the artifact

        Returns:
            The verified BackupArtifact

        Raises:
            BackupError: If the artifact cannot be written or read back
            BackupVerificationError: If the artifact's count differs from
                the live count
        """
        created_at = self._clock()
        path = self.directory / backup_filename(created_at)

        with self._tracer.span(
            "shadowswap.backup.create_backup",
            {ATTR_SOURCE_COLLECTION: collection.name},
        ):
            products = await collection.find({})
            payload = {
                "timestamp": created_at.isoformat(),
                "version": BACKUP_VERSION,
                "sourceCollection": collection.name,
                "totalProducts": len(products),
                "migrationConfig": config.to_dict() if config else {},
                "products": products,
            }
            try:
                await asyncio.to_thread(_write_artifact, path, payload)
                loaded = await asyncio.to_thread(_read_artifact, path)
            except (OSError, ValueError) as e:
                raise BackupError(f"Backup could not be written: {e}", path=str(path)) from e

            live_count = await collection.count_documents()
            backed_up = len(loaded.get("products", []))
            if backed_up != live_count:
                raise BackupVerificationError(live_count, backed_up, str(path))

        artifact = BackupArtifact(
            path=path,
            product_count=backed_up,
            size_mb=path.stat().st_size / 1024 / 1024,
            created_at=created_at,
        )
        logger.info(
            "Backup of %s verified: %d products in %s (%.2f MB)",
            collection.name,
            artifact.product_count,
            path,
            artifact.size_mb,
        )
        return artifact

    async def load_backup(self, path: str | Path) -> dict[str, Any]:
        """Read an artifact, decoding extended JSON types."""
        try:
            return await asyncio.to_thread(_read_artifact, Path(path))
        except (OSError, ValueError) as e:
            raise BackupError(f"Backup could not be read: {e}", path=str(path)) from e

    async def restore_backup(
        self,
        database: DocumentDatabase,
        path: str | Path,
        collection: str,
        *,
        replace: bool = False,
    ) -> int:
        """
        Load an artifact into a collection.

        This is the manual recovery path when neither the live collection
        nor the renamed backup collection can be used.

        Args:
            database: Database receiving the products
            path: Artifact to restore
            collection: Target collection name
            replace: Drop the collection first if it exists

        Returns:
            Number of restored products

        Raises:
            BackupError: If the collection exists and ``replace`` is False,
                or if any product fails to insert
        """
        artifact = await self.load_backup(path)
        products: list[Document] = artifact.get("products", [])

        with self._tracer.span(
            "shadowswap.backup.restore_backup",
            {ATTR_SOURCE_COLLECTION: collection, ATTR_DOCUMENT_COUNT: len(products)},
        ):
            if await database.collection_exists(collection):
                if not replace:
                    raise BackupError(
                        f"Collection {collection} already exists",
                        path=str(path),
                        suggested_action="Pass replace=True or restore into another collection",
                    )
                await database.drop_collection(collection)
            await database.create_collection(collection)
            result = await database[collection].insert_many(products, ordered=False)

        if result.failed_count:
            raise BackupError(
                f"{result.failed_count} products failed to restore",
                path=str(path),
                collection=collection,
            )
        logger.info("Restored %d products from %s into %s", result.inserted_count, path, collection)
        return result.inserted_count


def _write_artifact(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_util.dumps(payload, json_options=_JSON_OPTIONS, indent=2), "utf-8")


def _read_artifact(path: Path) -> dict[str, Any]:
    return json_util.loads(path.read_text("utf-8"), json_options=_JSON_OPTIONS)


__all__ = [
    "BACKUP_VERSION",
    "BackupArtifact",
    "BackupManager",
    "backup_filename",
]
