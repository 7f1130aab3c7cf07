"""SQLAlchemy-backed relational store for the object graph."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from docgraph.errors import StoreError, StoreUnavailable, StoreWriteFailed
from docgraph.storage.models import Base


LOGGER = logging.getLogger(__name__)

_CONNECTION_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def _translate(exc: SQLAlchemyError, *, writing: bool) -> StoreError:
    if isinstance(exc, _CONNECTION_ERRORS) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return StoreUnavailable(f"Object store unavailable: {exc}")
    if writing:
        return StoreWriteFailed(f"Failed to persist objects: {exc}")
    return StoreError(f"Object store query failed: {exc}")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class ObjectStore:
    """Persist objects and fields to a relational database.

    Example:
        >>> store = ObjectStore("sqlite:///objects.db")
        >>> with store.session() as session:
        ...     session.add(ObjectRow.new())
    """

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self._engine = create_engine(database_url, future=True, echo=echo)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise _translate(exc, writing=True) from exc
        LOGGER.debug("Object store ready at %s", self._engine.url)

    @property
    def engine(self) -> Engine:
        return self._engine

    def __enter__(self) -> "ObjectStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        self._engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Open a write session that commits on success and rolls back on error.

        Everything added inside one ``with`` block becomes visible together or
        not at all. Store failures surface as :class:`StoreError` subclasses;
        any other exception propagates unchanged after the rollback.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise _translate(exc, writing=True) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """Open a session for queries; nothing is committed."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            raise _translate(exc, writing=False) from exc
        finally:
            session.close()
