"""
Standard span and metric attributes for shadowswap.

Attribute constants used across all components for consistent span
naming and metrics labeling. Database attributes follow OpenTelemetry
semantic conventions.
"""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_PHASE = "shadowswap.migration.phase"
"""Name of the migration phase (e.g., 'data-transformation')."""

ATTR_SOURCE_COLLECTION = "shadowswap.migration.source_collection"
"""Name of the collection being migrated."""

ATTR_SHADOW_COLLECTION = "shadowswap.migration.shadow_collection"
"""Name of the shadow collection receiving transformed documents."""

ATTR_BACKUP_COLLECTION = "shadowswap.migration.backup_collection"
"""Name of the collection holding the pre-switch documents."""

# =============================================================================
# Document Attributes
# =============================================================================

ATTR_DOCUMENT_COUNT = "shadowswap.document.count"
"""Number of documents in an operation (integer)."""

ATTR_BATCH_NUMBER = "shadowswap.batch.number"
"""1-based number of the current transformation batch."""

ATTR_BATCH_SIZE = "shadowswap.batch.size"
"""Number of documents in the current batch."""

# =============================================================================
# Index and Query Attributes
# =============================================================================

ATTR_INDEX_NAME = "shadowswap.index.name"
"""Name of the index being created."""

ATTR_INDEX_COUNT = "shadowswap.index.count"
"""Number of index specifications processed."""

ATTR_QUERY_NAME = "shadowswap.query.name"
"""Name of a performance test query."""

ATTR_QUERY_TARGET_MS = "shadowswap.query.target_ms"
"""Latency target of a performance test query in milliseconds."""

ATTR_QUERY_CRITICAL = "shadowswap.query.critical"
"""Whether the performance test query is critical."""

# =============================================================================
# Verification Attributes
# =============================================================================

ATTR_SUITE_NAME = "shadowswap.verification.suite"
"""Name of an integrity verification suite."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_NAME = "db.name"
"""Database name."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'renameCollection')."""


__all__ = [
    "ATTR_MIGRATION_PHASE",
    "ATTR_SOURCE_COLLECTION",
    "ATTR_SHADOW_COLLECTION",
    "ATTR_BACKUP_COLLECTION",
    "ATTR_DOCUMENT_COUNT",
    "ATTR_BATCH_NUMBER",
    "ATTR_BATCH_SIZE",
    "ATTR_INDEX_NAME",
    "ATTR_INDEX_COUNT",
    "ATTR_QUERY_NAME",
    "ATTR_QUERY_TARGET_MS",
    "ATTR_QUERY_CRITICAL",
    "ATTR_SUITE_NAME",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
]
