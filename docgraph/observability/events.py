"""Event primitives and dispatcher for object graph observability."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from threading import RLock
from typing import Any, Dict, Iterator, Optional, Tuple

Metadata = Dict[str, Any]
EventObserver = Callable[["ServiceEvent"], None]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ServiceEvent:
    """Event emitted by the object store and service."""

    timestamp: datetime
    service: str
    name: str
    payload: Metadata = field(default_factory=dict)


class EventRecorder:
    """Dispatch service events to registered observers.

    Scoped recorders share the observer list of their root, so an observer
    registered anywhere sees events recorded under every scope.
    """

    __slots__ = ("_service_path", "_root", "_observers", "_lock")

    def __init__(
        self,
        service: Sequence[str] | str | None = None,
        *,
        parent: "EventRecorder" | None = None,
    ) -> None:
        own_path = self._split_service(service)
        if parent is None:
            self._root = self
            self._observers: list[EventObserver] = []
            self._service_path: Tuple[str, ...] = own_path
            self._lock = RLock()
        else:
            self._root = parent._root
            self._observers = parent._root._observers
            self._service_path = parent._service_path + own_path
            self._lock = parent._root._lock

    @staticmethod
    def _split_service(service: Sequence[str] | str | None) -> Tuple[str, ...]:
        if service is None:
            return ()
        if isinstance(service, str):
            return tuple(part for part in service.split(".") if part)
        return tuple(part for part in service if part)

    @property
    def service(self) -> str:
        """Return the dotted service namespace for this recorder."""

        return ".".join(self._service_path)

    def scoped(self, service: Sequence[str] | str) -> "EventRecorder":
        """Return a child recorder nested under this recorder's namespace."""

        return EventRecorder(service, parent=self)

    def register(self, observer: EventObserver) -> None:
        with self._lock:
            if observer not in self._root._observers:
                self._root._observers.append(observer)

    def unregister(self, observer: EventObserver) -> None:
        with self._lock:
            if observer in self._root._observers:
                self._root._observers.remove(observer)

    @contextmanager
    def temporary_observer(self, observer: EventObserver) -> Iterator[None]:
        """Register an observer for the duration of the context manager."""

        self.register(observer)
        try:
            yield
        finally:
            self.unregister(observer)

    def record(
        self,
        name: str,
        payload: Metadata | None = None,
        *,
        timestamp: Optional[datetime] = None,
    ) -> ServiceEvent:
        """Create an event under this recorder's namespace and notify observers."""

        event = ServiceEvent(
            timestamp=timestamp or datetime.utcnow(),
            service=self.service,
            name=name,
            payload=dict(payload or {}),
        )
        self._dispatch(event)
        return event

    def _dispatch(self, event: ServiceEvent) -> None:
        with self._lock:
            observers = tuple(self._root._observers)
        for observer in observers:
            try:
                observer(event)
            except Exception:
                LOGGER.exception(
                    "Observer %r failed while handling %s.%s",
                    observer,
                    event.service,
                    event.name,
                )


def logging_observer(event: ServiceEvent) -> None:
    """Write object graph events to the module logger."""

    if event.name == "object.created":
        LOGGER.info(
            "Created object %s with %s fields across %s objects",
            event.payload.get("object_id"),
            event.payload.get("field_count"),
            event.payload.get("object_count"),
        )
    elif event.name == "query.executed":
        LOGGER.debug(
            "Query with %s terms matched %s objects in %.2f ms",
            event.payload.get("term_count"),
            event.payload.get("result_count"),
            event.payload.get("duration_ms", 0.0),
        )
    elif event.name.endswith(".failed"):
        LOGGER.warning(
            "%s.%s: %s",
            event.service,
            event.name,
            event.payload.get("error"),
        )


def configure_logging(level: str) -> None:
    """Set the level of the ``docgraph`` package logger."""

    logging.getLogger("docgraph").setLevel(level.upper())


_GLOBAL_RECORDER = EventRecorder()


def get_event_recorder(service: Sequence[str] | str | None = None) -> EventRecorder:
    """Return the global event recorder or a scoped variant."""

    if service is None:
        return _GLOBAL_RECORDER
    return _GLOBAL_RECORDER.scoped(service)


def reset_event_recorder() -> None:
    """Replace the global recorder with a clean instance."""

    global _GLOBAL_RECORDER
    _GLOBAL_RECORDER = EventRecorder()
