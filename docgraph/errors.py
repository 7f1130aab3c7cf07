"""Exception hierarchy for the object graph subsystem."""

from __future__ import annotations

from typing import Any


class DocGraphError(Exception):
    """Base error for object graph failures."""


class InvalidFieldValue(DocGraphError):
    """Raised when a document field holds a value that cannot be stored."""

    def __init__(self, path: str, value: Any, reason: str | None = None) -> None:
        self.path = path
        self.value = value
        detail = reason or f"unsupported value of type {type(value).__name__}"
        super().__init__(f"Invalid value for field '{path}': {detail}")


class RecursionLimitExceeded(DocGraphError):
    """Raised when a document or pattern nests deeper than allowed."""

    def __init__(self, path: str, limit: int) -> None:
        self.path = path
        self.limit = limit
        super().__init__(f"Nesting depth limit of {limit} exceeded at '{path}'")


class QueryCompileError(DocGraphError):
    """Raised when a query pattern contains a value of an unsupported shape."""

    def __init__(self, path: str, value: Any, reason: str | None = None) -> None:
        self.path = path
        self.value = value
        detail = reason or f"unsupported value of type {type(value).__name__}"
        super().__init__(f"Cannot compile pattern at '{path}': {detail}")


class StoreError(DocGraphError):
    """Raised when the relational store fails."""


class StoreUnavailable(StoreError):
    """Raised when the store cannot be reached or the connection is lost."""


class StoreWriteFailed(StoreError):
    """Raised when persisting objects or fields fails."""
