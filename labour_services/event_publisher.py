"""
Event publishing (``labour_services.event_publisher``).

Responsibility:
    Hand domain events to the write-only ``EventSink`` through a dispatcher
    so that an event-sink outage can never block or unwind a business
    state change.  Also provides ``LoggingEventSink``, which writes each
    event as a structured log record for log-pipeline consumers.

Usage:
    publisher = EventPublisher(LoggingEventSink(), InlineDispatcher())
    publisher.publish(EventType.TASK_DEPLOYED, task_id, {"blueprint_id": ...})
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from labour_kernel.domain.events import EventSink
from labour_kernel.logging_config import get_logger
from labour_services.dispatcher import Dispatcher, InlineDispatcher

logger = get_logger("services.events")

# Field used by log aggregators to pick domain events out of the stream
OBSERVABILITY_FIELD = "observability_event"


class LoggingEventSink:
    """Event sink that records events as structured log lines."""

    def record(self, event_type: str, subject_id: str, payload: dict[str, Any]) -> None:
        logger.info("domain_event", extra={
            OBSERVABILITY_FIELD: event_type,
            "subject_id": subject_id,
            "payload": payload,
        })


class EventPublisher:
    """Best-effort bridge from services to an ``EventSink``."""

    def __init__(self, sink: EventSink, dispatcher: Dispatcher | None = None):
        self._sink = sink
        self._dispatcher = dispatcher or InlineDispatcher()

    def publish(
        self,
        event_type: str | Enum,
        subject_id: Any,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Record an event; failures are logged by the dispatcher, never raised."""
        name = event_type.value if isinstance(event_type, Enum) else event_type
        self._dispatcher.submit(
            f"event:{name}",
            self._sink.record,
            name,
            str(subject_id),
            _jsonable(payload or {}),
        )


def _jsonable(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values and stringify non-primitive values."""
    clean: dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        else:
            clean[key] = str(value)
    return clean
