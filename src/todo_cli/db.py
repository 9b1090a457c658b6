from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generator, List
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    bindparam,
    create_engine,
    false,
    func,
    text,
)
from sqlalchemy.engine import URL, Connection, Engine, Row
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from .errors import ConflictError, ConnectivityError, NotFoundError, StorageError
from .models import TodoEntity
from .repositories import Repository
from .settings import Settings

logger = logging.getLogger(__name__)

POOL_SIZE = 10
POOL_RECYCLE_SECONDS = 60 * 60
POOL_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

metadata = MetaData()

todos = Table(
    _COLS.table,
    metadata,
    Column(_COLS.id, Uuid, primary_key=True),
    Column(_COLS.title, String(255), nullable=False),
    Column(_COLS.description, Text, nullable=True),
    Column(_COLS.completed, Boolean, server_default=false()),
    Column(_COLS.created_at, DateTime(timezone=True), server_default=func.now()),
    Column(_COLS.updated_at, DateTime(timezone=True), server_default=func.now()),
    Index(f"idx_{_COLS.table}_created_at", _COLS.created_at),
    Index(f"idx_{_COLS.table}_completed", _COLS.completed),
)

_TIMESTAMP = DateTime(timezone=True)

_RESULT_TYPES = {
    _COLS.id: Uuid,
    _COLS.title: String,
    _COLS.description: Text,
    _COLS.completed: Boolean,
    _COLS.created_at: _TIMESTAMP,
    _COLS.updated_at: _TIMESTAMP,
}

_SELECT = f"""
    SELECT {_COLS.id}, {_COLS.title}, {_COLS.description}, {_COLS.completed},
        {_COLS.created_at}, {_COLS.updated_at}
    FROM {_COLS.table}
"""

_FIND_ALL = text(f"{_SELECT} ORDER BY {_COLS.created_at} DESC").columns(**_RESULT_TYPES)

_FIND_BY_ID = (
    text(f"{_SELECT} WHERE {_COLS.id} = :id")
    .bindparams(bindparam("id", type_=Uuid))
    .columns(**_RESULT_TYPES)
)

_INSERT = text(
    f"""
    INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.description}, {_COLS.completed},
        {_COLS.created_at}, {_COLS.updated_at})
    VALUES (:id, :title, :description, :completed, :created_at, :updated_at)
    """
).bindparams(
    bindparam("id", type_=Uuid),
    bindparam("completed", type_=Boolean),
    bindparam("created_at", type_=_TIMESTAMP),
    bindparam("updated_at", type_=_TIMESTAMP),
)

_UPDATE = text(
    f"""
    UPDATE {_COLS.table}
    SET {_COLS.title} = :title, {_COLS.description} = :description,
        {_COLS.completed} = :completed, {_COLS.updated_at} = :updated_at
    WHERE {_COLS.id} = :id
    """
).bindparams(
    bindparam("id", type_=Uuid),
    bindparam("completed", type_=Boolean),
    bindparam("updated_at", type_=_TIMESTAMP),
)

_DELETE = text(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = :id").bindparams(
    bindparam("id", type_=Uuid)
)


# PUBLIC_INTERFACE
def postgres_url(settings: Settings) -> URL:
    """Build the SQLAlchemy URL for the configured PostgreSQL database."""
    return URL.create(
        "postgresql+psycopg",
        username=settings.postgres_user,
        password=settings.postgres_password,
        host=settings.postgres_host,
        port=settings.postgres_port,
        database=settings.postgres_db,
        query={"sslmode": settings.postgres_ssl_mode},
    )


# PUBLIC_INTERFACE
def create_db_engine(settings: Settings) -> Engine:
    """
    Create the pooled engine for the configured SQL backend.

    - postgres: psycopg driver, pool of POOL_SIZE connections recycled hourly
    - sqlite: file database at settings.sqlite_db_path (directory created)

    Connections are opened lazily; call ping() to verify the database is reachable.
    """
    backend = settings.persistence_backend
    if backend == "sqlite":
        path = settings.sqlite_db_path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        return create_engine(f"sqlite:///{path}")
    if backend == "postgres":
        return create_engine(
            postgres_url(settings),
            pool_size=POOL_SIZE,
            max_overflow=0,
            pool_recycle=POOL_RECYCLE_SECONDS,
            pool_timeout=POOL_TIMEOUT_SECONDS,
        )
    raise ValueError(f"backend {backend!r} has no SQL engine")


def _describe(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip()


# PUBLIC_INTERFACE
def ping(engine: Engine) -> None:
    """Run a trivial query. Raise ConnectivityError if the database is unreachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise ConnectivityError(f"unable to ping database: {_describe(e)}") from e


@contextmanager
def _connection(engine: Engine, transactional: bool = False) -> Generator[Connection, None, None]:
    """
    Check a connection out of the pool, optionally inside a transaction.

    Failing to connect, or losing the connection mid-statement, raises
    ConnectivityError; any other driver error raises StorageError.
    """
    try:
        conn = engine.connect()
    except SQLAlchemyError as e:
        raise ConnectivityError(_describe(e)) from e
    try:
        with conn:
            if transactional:
                with conn.begin():
                    yield conn
            else:
                yield conn
    except DBAPIError as e:
        if e.connection_invalidated:
            raise ConnectivityError(_describe(e)) from e
        raise StorageError(_describe(e)) from e
    except SQLAlchemyError as e:
        raise StorageError(_describe(e)) from e


# PUBLIC_INTERFACE
def init_schema(engine: Engine) -> None:
    """Create the todos table and its indexes if they do not exist."""
    with _connection(engine, transactional=True) as conn:
        metadata.create_all(conn, checkfirst=True)
    logger.info("Schema ready on %s", engine.url.render_as_string(hide_password=True))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_entity(row: Row) -> TodoEntity:
    m = row._mapping
    return {
        "id": m[_COLS.id],
        "title": str(m[_COLS.title]),
        "description": m[_COLS.description] if m[_COLS.description] is not None else "",
        "completed": bool(m[_COLS.completed]),
        "created_at": _as_utc(m[_COLS.created_at]),
        "updated_at": _as_utc(m[_COLS.updated_at]),
    }


class SQLRepository(Repository):
    """
    Repository issuing one parameterized statement per operation against the
    todos table through a pooled SQLAlchemy engine.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def find_all(self) -> List[TodoEntity]:
        with _connection(self._engine) as conn:
            rows = conn.execute(_FIND_ALL).fetchall()
        logger.debug("Fetched %d todos", len(rows))
        return [_row_to_entity(r) for r in rows]

    def find_by_id(self, todo_id: UUID) -> TodoEntity:
        with _connection(self._engine) as conn:
            row = conn.execute(_FIND_BY_ID, {"id": todo_id}).fetchone()
        if row is None:
            raise NotFoundError(todo_id)
        return _row_to_entity(row)

    def create(self, todo: TodoEntity) -> None:
        params = {
            "id": todo["id"],
            "title": todo["title"],
            "description": todo["description"],
            "completed": todo["completed"],
            "created_at": _as_utc(todo["created_at"]),
            "updated_at": _as_utc(todo["updated_at"]),
        }
        with _connection(self._engine, transactional=True) as conn:
            try:
                conn.execute(_INSERT, params)
            except IntegrityError as e:
                raise ConflictError(todo["id"]) from e
        logger.debug("Inserted todo %s", todo["id"])

    def update(self, todo: TodoEntity) -> None:
        params = {
            "id": todo["id"],
            "title": todo["title"],
            "description": todo["description"],
            "completed": todo["completed"],
            "updated_at": _as_utc(todo["updated_at"]),
        }
        with _connection(self._engine, transactional=True) as conn:
            affected = conn.execute(_UPDATE, params).rowcount
        if affected == 0:
            raise NotFoundError(todo["id"])
        logger.debug("Updated todo %s", todo["id"])

    def delete(self, todo_id: UUID) -> None:
        with _connection(self._engine, transactional=True) as conn:
            affected = conn.execute(_DELETE, {"id": todo_id}).rowcount
        if affected == 0:
            raise NotFoundError(todo_id)
        logger.debug("Deleted todo %s", todo_id)

    def ping(self) -> None:
        ping(self._engine)
