"""
docgraph: JSON-LD object storage on a relational field graph.

Nested documents are decomposed into generic objects and named fields stored
in two tables, and retrieved again by nested pattern matching.

Main Components:
- ObjectsService: Create objects from nested mappings and query them by pattern
- ObjectStore: SQLAlchemy-backed store for the objects and fields tables
- GraphObject / GraphField: Read-only handles returned by queries
- DocGraphConfig: Storage, nesting limit and logging configuration

Example:
    >>> from docgraph import ObjectsService, ObjectStore
    >>>
    >>> service = ObjectsService(ObjectStore("sqlite:///objects.db"))
    >>> service.create_object({"type": "Note", "actor": {"name": "alice"}})
    >>> notes = service.query({"actor": {"name": "alice"}})
"""

from docgraph.configuration import DocGraphConfig, load_config_from_file
from docgraph.errors import (
    DocGraphError,
    InvalidFieldValue,
    QueryCompileError,
    RecursionLimitExceeded,
    StoreError,
    StoreUnavailable,
    StoreWriteFailed,
)
from docgraph.objects import GraphField, GraphObject, ObjectsService
from docgraph.storage import ObjectStore

__version__ = "0.1.0"

__all__ = [
    "DocGraphConfig",
    "DocGraphError",
    "GraphField",
    "GraphObject",
    "InvalidFieldValue",
    "ObjectStore",
    "ObjectsService",
    "QueryCompileError",
    "RecursionLimitExceeded",
    "StoreError",
    "StoreUnavailable",
    "StoreWriteFailed",
    "load_config_from_file",
]
