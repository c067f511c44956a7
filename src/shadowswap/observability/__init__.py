"""
Observability utilities for shadowswap.

Provides composition-based tracing and the standard attribute names used by
all components.

Example:
    >>> from shadowswap.observability import create_tracer
    >>>
    >>> class MyStore:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...         self._enable_tracing = self._tracer.enabled
"""

from shadowswap.observability.attributes import (
    ATTR_BACKUP_COLLECTION,
    ATTR_BATCH_NUMBER,
    ATTR_BATCH_SIZE,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DOCUMENT_COUNT,
    ATTR_INDEX_COUNT,
    ATTR_INDEX_NAME,
    ATTR_MIGRATION_PHASE,
    ATTR_QUERY_CRITICAL,
    ATTR_QUERY_NAME,
    ATTR_QUERY_TARGET_MS,
    ATTR_SHADOW_COLLECTION,
    ATTR_SOURCE_COLLECTION,
    ATTR_SUITE_NAME,
)
from shadowswap.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_BACKUP_COLLECTION",
    "ATTR_BATCH_NUMBER",
    "ATTR_BATCH_SIZE",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_DOCUMENT_COUNT",
    "ATTR_INDEX_COUNT",
    "ATTR_INDEX_NAME",
    "ATTR_MIGRATION_PHASE",
    "ATTR_QUERY_CRITICAL",
    "ATTR_QUERY_NAME",
    "ATTR_QUERY_TARGET_MS",
    "ATTR_SHADOW_COLLECTION",
    "ATTR_SOURCE_COLLECTION",
    "ATTR_SUITE_NAME",
]
