"""Compile nested query patterns into a single SQL statement.

A pattern such as ``{"type": "Note", "actor": {"name": "alice"}}`` asks for
objects that have a ``type`` field equal to ``"Note"`` and an ``actor`` field
pointing at an object whose ``name`` is ``"alice"``.

Each level of the pattern joins ``objects`` to ``fields`` once. The predicates
for every key are OR-ed together in ``WHERE``, rows are grouped per object,
and ``HAVING`` keeps only objects where every term was satisfied by at least
one field. Nested patterns are compiled independently and used as an
``IN (...)`` test on the field's target object, so the statement grows with
the depth of the pattern rather than with the number of keys.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from functools import reduce
from typing import Any, List

from sqlalchemy import Select, and_, case, func, or_, select
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from docgraph.configuration import DEFAULT_MAX_DEPTH
from docgraph.errors import QueryCompileError
from docgraph.storage.models import FieldRow, ObjectRow
from docgraph.values import Nested, Scalar, ValueSequence, parse_document


@dataclass(slots=True, frozen=True)
class CompiledQuery:
    """A compiled pattern ready to run against the store."""

    pattern: Nested
    statement: Select
    term_count: int


def compile_query(pattern: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> CompiledQuery:
    """Validate a raw pattern and compile it into an ordered statement.

    The statement selects matching object ids, newest first. Objects created
    at the same instant are returned in reverse insertion order.

    Raises:
        QueryCompileError: If the pattern contains an unsupported value.
        RecursionLimitExceeded: If the pattern nests deeper than ``max_depth``.
    """
    parsed = parse_document(pattern, max_depth=max_depth, error=QueryCompileError)
    matching = compile_pattern(parsed)
    statement = (
        select(ObjectRow.id)
        .where(ObjectRow.id.in_(matching))
        .order_by(ObjectRow.created.desc(), ObjectRow.id.desc())
    )
    return CompiledQuery(
        pattern=parsed,
        statement=statement,
        term_count=count_terms(parsed),
    )


def compile_pattern(pattern: Nested, depth: int = 0, path: str = "") -> Select:
    """Return a statement selecting ids of objects that match ``pattern``.

    ``depth`` only names the table aliases of each nesting level. An empty
    pattern matches every object.
    """
    obj = aliased(ObjectRow, name=f"object{depth}")
    if not len(pattern):
        return select(obj.id)

    fld = aliased(FieldRow, name=f"field{depth}")
    terms: List[ColumnElement[bool]] = []
    for name, value in pattern:
        field_path = f"{path}.{name}" if path else name
        if isinstance(value, ValueSequence):
            if not len(value):
                raise QueryCompileError(
                    field_path, [], "an empty list cannot be matched"
                )
            # Repeated elements would demand the same field twice.
            for item in dict.fromkeys(value.items):
                terms.append(_term(fld, name, item, depth, field_path))
        else:
            terms.append(_term(fld, name, value, depth, field_path))

    satisfied = reduce(
        operator.add,
        [func.max(case((term, 1), else_=0)) for term in terms],
    )
    return (
        select(obj.id)
        .join(fld, fld.object_id == obj.id)
        .where(or_(*terms))
        .group_by(obj.id)
        .having(satisfied == len(terms))
    )


def _term(
    fld: Any,
    name: str,
    value: Scalar | Nested,
    depth: int,
    path: str,
) -> ColumnElement[bool]:
    if isinstance(value, Scalar):
        return and_(fld.name == name, fld.value == value.value)
    if isinstance(value, Nested):
        return and_(
            fld.name == name,
            fld.target_object_id.in_(compile_pattern(value, depth + 1, path)),
        )
    raise QueryCompileError(path, value)


def count_terms(pattern: Nested) -> int:
    """Count the field requirements in a pattern, nested levels included."""
    total = 0
    for _, value in pattern:
        items = value.items if isinstance(value, ValueSequence) else (value,)
        for item in dict.fromkeys(items):
            total += 1
            if isinstance(item, Nested):
                total += count_terms(item)
    return total
