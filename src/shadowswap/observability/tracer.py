"""
Tracers used by the migration components.

Every component takes an optional ``tracer`` and an ``enable_tracing`` flag
and opens spans named ``shadowswap.<component>.<operation>``:

    >>> from shadowswap.observability import ATTR_MIGRATION_PHASE, create_tracer
    >>>
    >>> class ShadowBuilder:
    ...     def __init__(self, tracer=None, enable_tracing=True):
    ...         self._tracer = tracer or create_tracer(__name__, enable_tracing)
    ...
    ...     async def build(self, database):
    ...         with self._tracer.span(
    ...             "shadowswap.shadow.build", {ATTR_MIGRATION_PHASE: "shadow-creation"}
    ...         ):
    ...             await database.drop_collection("products_v2_shadow")

Spans reach an exporter only when the application installs an OpenTelemetry
tracer provider. Tests inject ``MockTracer`` and assert on span names.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.trace import Span

SpanAttributes = dict[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """Anything that can open a span around a migration step."""

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool: ...


class NullTracer:
    """Tracer used when ``enable_tracing=False``; spans are empty contexts."""

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by ``opentelemetry.trace``.

    The underlying tracer is looked up once per component, so spans of a
    migration run nest under whatever span is current when a phase starts.

    Args:
        tracer_name: Instrumentation scope, usually the component's module
    """

    def __init__(self, tracer_name: str) -> None:
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        # Exceptions raised inside the block are recorded on the span and re-raised
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Tracer for tests that keeps every opened span.

    Attributes:
        spans: ``(name, attributes)`` pairs in the order the spans were opened

    Example:
        >>> tracer = MockTracer()
        >>> orchestrator = MigrationOrchestrator(database, config, tracer=tracer)
        >>> await orchestrator.switch_collections()
        >>> "shadowswap.orchestrator.switch" in tracer.span_names
        True
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Return an OpenTelemetryTracer, or a NullTracer when tracing is disabled.

    Args:
        name: Instrumentation scope, usually ``__name__``
        enable_tracing: False for runs that should not emit spans
    """
    return OpenTelemetryTracer(name) if enable_tracing else NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
