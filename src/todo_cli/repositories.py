from __future__ import annotations

from abc import ABC, abstractmethod
from threading import RLock
from typing import TYPE_CHECKING, Dict, List, Optional
from uuid import UUID

from .errors import ConflictError, NotFoundError
from .models import TodoEntity
from .settings import Settings

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract gateway contract for todo storage backends."""

    @abstractmethod
    def find_all(self) -> List[TodoEntity]:
        """Return every TodoEntity, newest created_at first."""

    @abstractmethod
    def find_by_id(self, todo_id: UUID) -> TodoEntity:
        """Return the TodoEntity with this id. Raise NotFoundError if missing."""

    @abstractmethod
    def create(self, todo: TodoEntity) -> None:
        """Insert a fully populated TodoEntity. Raise ConflictError on duplicate id."""

    @abstractmethod
    def update(self, todo: TodoEntity) -> None:
        """
        Rewrite title, description, completed and updated_at of an existing
        TodoEntity. Raise NotFoundError if no row matches todo["id"].
        """

    @abstractmethod
    def delete(self, todo_id: UUID) -> None:
        """Delete a TodoEntity by id. Raise NotFoundError if missing."""

    @abstractmethod
    def ping(self) -> None:
        """Check the store is reachable. Raise ConnectivityError otherwise."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and throwaway runs.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[UUID, TodoEntity] = {}

    def find_all(self) -> List[TodoEntity]:
        with self._lock:
            items = sorted(self._items.values(), key=lambda t: t["created_at"], reverse=True)
            # Return copies to avoid external mutation
            return [t.copy() for t in items]

    def find_by_id(self, todo_id: UUID) -> TodoEntity:
        with self._lock:
            item = self._items.get(todo_id)
            if item is None:
                raise NotFoundError(todo_id)
            return item.copy()

    def create(self, todo: TodoEntity) -> None:
        with self._lock:
            if todo["id"] in self._items:
                raise ConflictError(todo["id"])
            self._items[todo["id"]] = todo.copy()

    def update(self, todo: TodoEntity) -> None:
        with self._lock:
            existing = self._items.get(todo["id"])
            if existing is None:
                raise NotFoundError(todo["id"])

            updated = existing.copy()
            updated["title"] = todo["title"]
            updated["description"] = todo["description"]
            updated["completed"] = todo["completed"]
            updated["updated_at"] = todo["updated_at"]
            self._items[todo["id"]] = updated

    def delete(self, todo_id: UUID) -> None:
        with self._lock:
            if self._items.pop(todo_id, None) is None:
                raise NotFoundError(todo_id)

    def ping(self) -> None:
        return None


# PUBLIC_INTERFACE
def get_repository(settings: Settings, engine: Optional["Engine"] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - postgres/sqlite: SQLRepository bound to the given engine (one is
      created from settings when omitted). The sqlite schema is created on
      first use; postgres expects migrations/ or `todo init-db` to have run.
    """
    if settings.persistence_backend == "memory":
        return InMemoryRepository()

    from .db import SQLRepository, create_db_engine, init_schema

    if engine is None:
        engine = create_db_engine(settings)
    if settings.persistence_backend == "sqlite":
        init_schema(engine)
    return SQLRepository(engine)
