"""Create and query JSON-LD style objects stored as a field graph."""

from __future__ import annotations

import logging
import time
from typing import Any, List, Mapping, Optional

from sqlalchemy import func, select

from docgraph.configuration import DEFAULT_MAX_DEPTH, DocGraphConfig
from docgraph.errors import StoreError
from docgraph.objects.graph import GraphObject, load_object_graph
from docgraph.objects.materializer import DocumentMaterializer
from docgraph.objects.query import compile_query
from docgraph.observability import (
    EventRecorder,
    configure_logging,
    get_event_recorder,
    logging_observer,
)
from docgraph.storage import ObjectRow, ObjectStore
from docgraph.values import parse_document


LOGGER = logging.getLogger(__name__)


class ObjectsService:
    """
    Store nested documents as objects and fields, and query them by pattern.

    Example:
        >>> service = ObjectsService(ObjectStore("sqlite:///objects.db"))
        >>> note = service.create_object(
        ...     {"type": "Note", "attributedTo": {"name": "alice"}}
        ... )
        >>> service.query({"attributedTo": {"name": "alice"}})[0].object_id == note.object_id
        True
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        recorder: Optional[EventRecorder] = None,
        emit_events: bool = True,
    ) -> None:
        """
        Args:
            store: Relational store holding the objects and fields tables.
            max_depth: Deepest nesting accepted in documents and patterns.
            recorder: Event recorder; defaults to the global ``objects`` scope.
            emit_events: Whether to record service events at all.
        """
        self._store = store
        self._max_depth = max_depth
        self._recorder = recorder or get_event_recorder("objects")
        self._emit_events = emit_events
        if emit_events:
            self._recorder.register(logging_observer)

    @classmethod
    def from_config(cls, config: DocGraphConfig) -> "ObjectsService":
        """Build a service and its store from a :class:`DocGraphConfig`."""
        if config.object_store.database_url is None:
            config.storage.ensure_directories()
        configure_logging(config.observability.log_level)
        store = ObjectStore(config.database_url, echo=config.object_store.echo_sql)
        return cls(
            store,
            max_depth=config.object_store.max_depth,
            emit_events=config.observability.enable_events,
        )

    def __enter__(self) -> "ObjectsService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._store.close()

    def create_object(self, fields: Mapping[str, Any]) -> GraphObject:
        """
        Create a new object with fields defined by ``fields``.

        String values become leaf fields. Mapping values are created as child
        objects and linked by a field of the same name. List values produce
        one field per element, all sharing the name. The whole document is
        committed in a single transaction.

        Args:
            fields: The fields that define the new object.

        Returns:
            The created object.

        Raises:
            InvalidFieldValue: If any value is not a string, mapping or list.
            RecursionLimitExceeded: If the document nests too deeply.
            StoreError: If the store rejects the write; nothing is persisted.
        """
        document = parse_document(fields, max_depth=self._max_depth)
        try:
            with self._store.session() as session:
                materializer = DocumentMaterializer(session)
                root = materializer.materialize(document)
                session.flush()
                graph = load_object_graph(session, [root.id])
                created = graph.get(root.id)
        except StoreError as exc:
            self._record("object.create.failed", {"error": str(exc)})
            raise

        self._record(
            "object.created",
            {
                "object_id": created.object_id,
                "object_count": materializer.stats.object_count,
                "field_count": materializer.stats.field_count,
            },
        )
        return created

    def query(self, pattern: Mapping[str, Any]) -> List[GraphObject]:
        """
        Query for objects with certain field values.

        Args:
            pattern: Mapping of field names to the values to match. A string
                matches a leaf field exactly. A mapping matches a field whose
                target object satisfies the nested pattern. A list matches a
                field that holds every listed value (it may hold more). An
                empty pattern matches every object.

        Returns:
            The matching objects ordered by creation time, newest first.

        Raises:
            QueryCompileError: If the pattern holds an unsupported value.
            RecursionLimitExceeded: If the pattern nests too deeply.
            StoreError: If the store cannot run the query.
        """
        compiled = compile_query(pattern, max_depth=self._max_depth)
        start_time = time.perf_counter()
        try:
            with self._store.read_session() as session:
                object_ids = list(session.execute(compiled.statement).scalars())
                graph = load_object_graph(session, object_ids)
        except StoreError as exc:
            self._record("query.failed", {"error": str(exc)})
            raise
        duration_ms = (time.perf_counter() - start_time) * 1000

        self._record(
            "query.executed",
            {
                "term_count": compiled.term_count,
                "result_count": len(object_ids),
                "duration_ms": duration_ms,
            },
        )
        return [graph.get(object_id) for object_id in object_ids]

    def get_object(self, object_id: int) -> Optional[GraphObject]:
        """Return the object with the given id, or ``None`` if it does not exist."""
        with self._store.read_session() as session:
            graph = load_object_graph(session, [object_id])
        return graph.get(object_id)

    def count_objects(self) -> int:
        """Return the number of stored objects, nested ones included."""
        with self._store.read_session() as session:
            return session.execute(select(func.count()).select_from(ObjectRow)).scalar_one()

    def _record(self, name: str, payload: Mapping[str, Any]) -> None:
        if self._emit_events:
            self._recorder.record(name, dict(payload))
        else:
            LOGGER.debug("%s %s", name, dict(payload))
