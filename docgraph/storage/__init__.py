"""Relational storage for objects and their fields."""

from .catalog import ObjectStore
from .models import Base, FieldRow, ObjectRow

__all__ = [
    "Base",
    "FieldRow",
    "ObjectRow",
    "ObjectStore",
]
