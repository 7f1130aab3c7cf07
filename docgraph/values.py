"""Tagged field values resolved once at the API boundary.

Documents and query patterns arrive as plain nested mappings. They are parsed
into :class:`Scalar`, :class:`Nested` and :class:`ValueSequence` instances so
the materializer and the pattern compiler can dispatch on a closed set of
shapes instead of inspecting arbitrary Python values.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Tuple, Type, Union

from docgraph.configuration import DEFAULT_MAX_DEPTH
from docgraph.errors import InvalidFieldValue, QueryCompileError, RecursionLimitExceeded

FieldErrorType = Type[Union[InvalidFieldValue, QueryCompileError]]


@dataclass(slots=True, frozen=True)
class Scalar:
    """A leaf string value."""

    value: str


@dataclass(slots=True, frozen=True)
class Nested:
    """An object value: ordered ``(name, value)`` pairs."""

    entries: Tuple[Tuple[str, "FieldValue"], ...] = ()

    def __iter__(self) -> Iterator[Tuple[str, "FieldValue"]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(slots=True, frozen=True)
class ValueSequence:
    """Several values stored under one field name (a JSON-LD array)."""

    items: Tuple[Union[Scalar, Nested], ...] = ()

    def __iter__(self) -> Iterator[Union[Scalar, Nested]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


FieldValue = Union[Scalar, Nested, ValueSequence]


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def parse_document(
    document: Any,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    error: FieldErrorType = InvalidFieldValue,
) -> Nested:
    """Parse a top-level mapping into a :class:`Nested` value.

    Args:
        document: Mapping from field name to a string, mapping or list.
        max_depth: Deepest nesting level accepted; the top level is depth 0.
        error: Error type raised for unsupported values.

    Raises:
        InvalidFieldValue: (or ``error``) for unsupported values or names.
        RecursionLimitExceeded: If the mapping nests deeper than ``max_depth``.
    """
    if not isinstance(document, Mapping):
        raise error("<root>", document, "expected a mapping of field names to values")
    return _parse_mapping(document, "", 0, max_depth, error)


def parse_field_value(
    value: Any,
    *,
    path: str = "<value>",
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
    error: FieldErrorType = InvalidFieldValue,
) -> FieldValue:
    """Resolve a single raw value into its tagged form."""
    if isinstance(value, str):
        return Scalar(value)
    if isinstance(value, Mapping):
        return _parse_mapping(value, path, depth + 1, max_depth, error)
    if isinstance(value, (list, tuple)):
        items = []
        for index, item in enumerate(value):
            item_path = f"{path}[{index}]"
            if isinstance(item, (list, tuple)):
                raise error(item_path, item, "nested sequences are not supported")
            parsed = parse_field_value(
                item, path=item_path, depth=depth, max_depth=max_depth, error=error
            )
            items.append(parsed)
        return ValueSequence(tuple(items))
    raise error(path, value)


def _parse_mapping(
    mapping: Mapping[Any, Any],
    path: str,
    depth: int,
    max_depth: int,
    error: FieldErrorType,
) -> Nested:
    if depth > max_depth:
        raise RecursionLimitExceeded(path or "<root>", max_depth)
    entries = []
    for name, raw in mapping.items():
        if not isinstance(name, str):
            raise error(_join(path, str(name)), name, "field names must be strings")
        entries.append(
            (
                name,
                parse_field_value(
                    raw,
                    path=_join(path, name),
                    depth=depth,
                    max_depth=max_depth,
                    error=error,
                ),
            )
        )
    return Nested(tuple(entries))
