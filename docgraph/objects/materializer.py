"""Turn nested documents into object and field rows."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from docgraph.storage.models import FieldRow, ObjectRow
from docgraph.values import Nested, Scalar, ValueSequence


@dataclass(slots=True)
class MaterializationStats:
    """Counts of rows created for one document."""

    object_count: int = 0
    field_count: int = 0


class DocumentMaterializer:
    """Add the rows for a parsed document to a session.

    Nothing is flushed or committed here; the caller owns the transaction so
    a document and all of its nested objects land together.

    Example:
        >>> materializer = DocumentMaterializer(session)
        >>> root = materializer.materialize(parse_document({"type": "Note"}))
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self.stats = MaterializationStats()

    def materialize(self, document: Nested) -> ObjectRow:
        obj = ObjectRow.new()
        self._session.add(obj)
        self.stats.object_count += 1
        for name, value in document:
            if isinstance(value, ValueSequence):
                for item in value:
                    self._persist_field(obj, name, item)
            else:
                self._persist_field(obj, name, value)
        return obj

    def _persist_field(self, obj: ObjectRow, name: str, value: Scalar | Nested) -> None:
        if isinstance(value, Scalar):
            field = FieldRow.with_value(obj, name, value.value)
        else:
            field = FieldRow.with_object(obj, name, self.materialize(value))
        self._session.add(field)
        self.stats.field_count += 1
