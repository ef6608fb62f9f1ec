"""
Labour Services -- dispatch, event publishing, reconciliation and wiring.

``build_labour_services`` lives in ``labour_services.factory``; it is not
re-exported here because it imports every module service.
"""

from labour_services.dispatcher import BackgroundDispatcher, Dispatcher, InlineDispatcher
from labour_services.event_publisher import EventPublisher, LoggingEventSink

__all__ = [
    "BackgroundDispatcher",
    "Dispatcher",
    "EventPublisher",
    "InlineDispatcher",
    "LoggingEventSink",
]
