"""Observability primitives for the object graph."""

from docgraph.observability.events import (
    EventObserver,
    EventRecorder,
    ServiceEvent,
    configure_logging,
    get_event_recorder,
    logging_observer,
    reset_event_recorder,
)

__all__ = [
    "EventObserver",
    "EventRecorder",
    "ServiceEvent",
    "configure_logging",
    "get_event_recorder",
    "logging_observer",
    "reset_event_recorder",
]
