"""Timing traces for dispatch operations."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generator

from vango_dispatch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TraceEvent:
    """Individual trace event in a dispatch flow."""

    timestamp: datetime
    event_type: str
    component: str
    subject_id: str
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class DispatchTracer:
    """Traces the operations performed for one delivery or matching request."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        self.events: list[TraceEvent] = []

    def add_event(
        self,
        event_type: str,
        component: str,
        duration_ms: float | None = None,
        **metadata: Any,
    ) -> None:
        """Add a trace event."""
        event = TraceEvent(
            timestamp=datetime.now(timezone.utc),
            event_type=event_type,
            component=component,
            subject_id=self.subject_id,
            duration_ms=duration_ms,
            metadata=metadata,
        )
        self.events.append(event)

        logger.debug(
            "trace_event",
            subject_id=self.subject_id,
            event_type=event_type,
            component=component,
            duration_ms=duration_ms,
            **metadata,
        )

    @contextmanager
    def trace_operation(
        self, operation: str, component: str, **metadata: Any
    ) -> Generator[None, None, None]:
        """Context manager to trace an operation with timing."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.add_event(operation, component, duration_ms=duration_ms, **metadata)

