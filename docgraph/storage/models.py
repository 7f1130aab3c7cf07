"""SQLAlchemy rows for the object graph.

Every document is decomposed into rows of two tables. ``objects`` holds one
row per JSON-LD object and carries nothing but identity and timestamps.
``fields`` holds the graph edges: each row has a subject (the object the field
belongs to), a name (the JSON key, e.g. ``id``, ``inReplyTo``,
``attributedTo``) and either a string ``value`` for leaf fields such as
``{"url": "https://example.com"}`` or a ``target_object`` for fields whose
value is another object, such as ``{"inReplyTo": {...}}``. A subject may have
several fields with the same name; together they represent a JSON-LD array.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for object graph tables."""


class ObjectRow(Base):
    """A vertex of the object graph. All of its content hangs off ``fields``."""

    __tablename__ = "objects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    fields: Mapped[list["FieldRow"]] = relationship(
        back_populates="subject",
        foreign_keys="FieldRow.object_id",
        cascade="all, delete-orphan",
        order_by="FieldRow.id",
    )
    # Reverse index of fields pointing at this object; never owns them.
    referencing_fields: Mapped[list["FieldRow"]] = relationship(
        back_populates="target_object",
        foreign_keys="FieldRow.target_object_id",
        order_by="FieldRow.id",
    )

    @classmethod
    def new(cls) -> "ObjectRow":
        """Create an empty object stamped with the current time."""
        now = datetime.utcnow()
        return cls(created=now, last_updated=now)

    def add_field(self, field: "FieldRow") -> None:
        if field.subject is not None and field.subject is not self:
            raise ValueError("Field already belongs to another object")
        if field not in self.fields:
            self.fields.append(field)

    def add_referencing_field(self, field: "FieldRow") -> None:
        if field not in self.referencing_fields:
            self.referencing_fields.append(field)

    def get_fields(self, name: Optional[str] = None) -> list["FieldRow"]:
        """Return outgoing fields, optionally only those called ``name``."""
        if name is None:
            return list(self.fields)
        return [field for field in self.fields if field.name == name]

    def __repr__(self) -> str:
        return f"ObjectRow(id={self.id!r}, created={self.created!r})"


class FieldRow(Base):
    """A named edge from a subject object to a string value or another object."""

    __tablename__ = "fields"
    __table_args__ = (
        CheckConstraint(
            "(value IS NULL) <> (target_object_id IS NULL)",
            name="ck_fields_value_xor_target",
        ),
        Index("ix_fields_name_value", "name", "value"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    object_id: Mapped[int] = mapped_column(
        ForeignKey("objects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    target_object_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("objects.id"), nullable=True, index=True
    )
    created: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    subject: Mapped[ObjectRow] = relationship(
        back_populates="fields",
        foreign_keys=[object_id],
    )
    target_object: Mapped[Optional[ObjectRow]] = relationship(
        back_populates="referencing_fields",
        foreign_keys=[target_object_id],
    )

    @classmethod
    def with_value(cls, subject: ObjectRow, name: str, value: str) -> "FieldRow":
        """Create a leaf field holding a string value.

        Args:
            subject: The object to which this field belongs.
            name: The name of the field.
            value: The value of the field.

        Returns:
            The new field, already attached to ``subject``.
        """
        field = cls._attached_to(subject, name)
        field.set_value(value)
        return field

    @classmethod
    def with_object(cls, subject: ObjectRow, name: str, target: ObjectRow) -> "FieldRow":
        """Create a field whose value is another object.

        Args:
            subject: The object to which this field belongs.
            name: The name of the field.
            target: The object this field points at.

        Returns:
            The new field, already attached to ``subject``.
        """
        field = cls._attached_to(subject, name)
        field.set_target_object(target)
        return field

    @classmethod
    def _attached_to(cls, subject: ObjectRow, name: str) -> "FieldRow":
        now = datetime.utcnow()
        field = cls(name=name, created=now, last_updated=now)
        subject.add_field(field)
        return field

    def set_value(self, value: str) -> None:
        """Make this a leaf field; clears any target object."""
        if not isinstance(value, str):
            raise TypeError(f"Field value must be a string, got {type(value).__name__}")
        self.target_object = None
        self.value = value
        self.last_updated = datetime.utcnow()

    def set_target_object(self, target: ObjectRow) -> None:
        """Point this field at another object; clears any string value."""
        self.value = None
        target.add_referencing_field(self)
        self.target_object = target
        self.last_updated = datetime.utcnow()

    @property
    def value_or_target(self) -> Union[str, ObjectRow, None]:
        """Return the target object if set, otherwise the string value."""
        if self.target_object is not None:
            return self.target_object
        return self.value

    def __repr__(self) -> str:
        return (
            f"FieldRow(id={self.id!r}, name={self.name!r}, value={self.value!r}, "
            f"target_object_id={self.target_object_id!r})"
        )
