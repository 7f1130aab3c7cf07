"""Read-only handles for objects returned by the service.

Query results are loaded into an :class:`ObjectGraph` arena keyed by object
and field ids. Handles refer to one another by id and resolve through the
arena, so they stay navigable after the database session is closed.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from docgraph.storage.models import FieldRow, ObjectRow


@dataclass(slots=True, frozen=True)
class GraphField:
    """A named edge from ``subject_id`` to a string value or another object."""

    field_id: int
    subject_id: int
    name: str
    value: Optional[str]
    target_id: Optional[int]
    created: datetime
    last_updated: datetime
    graph: "ObjectGraph" = field(repr=False, compare=False)

    @property
    def subject(self) -> Optional["GraphObject"]:
        """The owning object, if it was loaded into the arena."""
        return self.graph.get(self.subject_id)

    @property
    def target(self) -> Optional["GraphObject"]:
        if self.target_id is None:
            return None
        return self.graph.get(self.target_id)

    @property
    def value_or_target(self) -> Union[str, "GraphObject", None]:
        if self.target_id is not None:
            return self.target
        return self.value


@dataclass(slots=True, frozen=True)
class GraphObject:
    """Snapshot of a stored object and the fields reachable from it."""

    object_id: int
    created: datetime
    last_updated: datetime
    field_ids: Tuple[int, ...]
    graph: "ObjectGraph" = field(repr=False, compare=False)

    @property
    def fields(self) -> List[GraphField]:
        return [self.graph.field(field_id) for field_id in self.field_ids]

    @property
    def referencing_fields(self) -> List[GraphField]:
        """Loaded fields of other objects that point at this one."""
        return self.graph.referencing(self.object_id)

    def get_fields(self, name: str) -> List[GraphField]:
        return [item for item in self.fields if item.name == name]

    def values(self, name: str) -> List[Union[str, "GraphObject", None]]:
        """Return every value stored under ``name``, in insertion order."""
        return [item.value_or_target for item in self.get_fields(name)]

    def get(self, name: str, default: Any = None) -> Any:
        """Return the first value stored under ``name``."""
        values = self.values(name)
        return values[0] if values else default

    def to_dict(self) -> Dict[str, Any]:
        """Rebuild the nested mapping this object was created from.

        Fields that occur more than once become lists. A single-element list
        in the original document therefore comes back as a plain value.
        """
        return self._to_dict(frozenset())

    def _to_dict(self, ancestors: frozenset) -> Dict[str, Any]:
        if self.object_id in ancestors:
            raise ValueError(f"Object {self.object_id} references itself")
        ancestors = ancestors | {self.object_id}
        grouped: Dict[str, List[Any]] = {}
        for item in self.fields:
            if item.target_id is not None:
                target = item.target
                rendered: Any = target._to_dict(ancestors) if target is not None else None
            else:
                rendered = item.value
            grouped.setdefault(item.name, []).append(rendered)
        return {
            name: values[0] if len(values) == 1 else values
            for name, values in grouped.items()
        }


class ObjectGraph:
    """Arena of loaded objects and fields."""

    def __init__(self) -> None:
        self._objects: Dict[int, GraphObject] = {}
        self._fields: Dict[int, GraphField] = {}
        self._referencing: Dict[int, List[int]] = defaultdict(list)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def get(self, object_id: Optional[int]) -> Optional[GraphObject]:
        if object_id is None:
            return None
        return self._objects.get(object_id)

    def field(self, field_id: int) -> GraphField:
        return self._fields[field_id]

    def referencing(self, object_id: int) -> List[GraphField]:
        return [self._fields[field_id] for field_id in self._referencing.get(object_id, ())]

    def _add_field(self, row: Any) -> GraphField:
        existing = self._fields.get(row.id)
        if existing is not None:
            return existing
        graph_field = GraphField(
            field_id=row.id,
            subject_id=row.object_id,
            name=row.name,
            value=row.value,
            target_id=row.target_object_id,
            created=row.created,
            last_updated=row.last_updated,
            graph=self,
        )
        self._fields[row.id] = graph_field
        if row.target_object_id is not None:
            self._referencing[row.target_object_id].append(row.id)
        return graph_field

    def _add_object(self, row: Any, field_ids: Iterable[int]) -> GraphObject:
        graph_object = GraphObject(
            object_id=row.id,
            created=row.created,
            last_updated=row.last_updated,
            field_ids=tuple(field_ids),
            graph=self,
        )
        self._objects[row.id] = graph_object
        return graph_object


_FIELD_COLUMNS = (
    FieldRow.id,
    FieldRow.object_id,
    FieldRow.name,
    FieldRow.value,
    FieldRow.target_object_id,
    FieldRow.created,
    FieldRow.last_updated,
)


def load_object_graph(session: Session, object_ids: Iterable[int]) -> ObjectGraph:
    """Load the given objects and everything reachable from them.

    The graph is walked breadth-first with a fixed number of queries per
    level. Fields of unloaded objects that point into the loaded set are
    recorded as referencing fields.
    """
    graph = ObjectGraph()
    frontier = set(object_ids)
    while frontier:
        object_rows = session.execute(
            select(ObjectRow.id, ObjectRow.created, ObjectRow.last_updated).where(
                ObjectRow.id.in_(frontier)
            )
        ).all()
        field_rows = session.execute(
            select(*_FIELD_COLUMNS)
            .where(FieldRow.object_id.in_(frontier))
            .order_by(FieldRow.id)
        ).all()
        referencing_rows = session.execute(
            select(*_FIELD_COLUMNS)
            .where(FieldRow.target_object_id.in_(frontier))
            .order_by(FieldRow.id)
        ).all()

        owned: Dict[int, List[int]] = defaultdict(list)
        for row in field_rows:
            graph._add_field(row)
            owned[row.object_id].append(row.id)
        for row in referencing_rows:
            graph._add_field(row)
        for row in object_rows:
            graph._add_object(row, owned.get(row.id, ()))

        frontier = {
            row.target_object_id
            for row in field_rows
            if row.target_object_id is not None and row.target_object_id not in graph
        }
    return graph
