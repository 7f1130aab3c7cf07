"""Document materialization, pattern queries and object handles."""

from .graph import GraphField, GraphObject, ObjectGraph, load_object_graph
from .materializer import DocumentMaterializer, MaterializationStats
from .query import CompiledQuery, compile_pattern, compile_query, count_terms
from .service import ObjectsService

__all__ = [
    "CompiledQuery",
    "DocumentMaterializer",
    "GraphField",
    "GraphObject",
    "MaterializationStats",
    "ObjectGraph",
    "ObjectsService",
    "compile_pattern",
    "compile_query",
    "count_terms",
    "load_object_graph",
]
