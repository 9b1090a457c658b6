from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from .models import TodoEntity
from .repositories import Repository
from .schemas import TodoCreate, TodoUpdate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class TodoService(ABC):
    """Use cases offered to the command surface."""

    @abstractmethod
    def find_all_todos(self) -> List[TodoEntity]:
        """Return every todo, newest first."""

    @abstractmethod
    def find_todo_by_id(self, todo_id: UUID) -> TodoEntity:
        """Return one todo. Raise NotFoundError if missing."""

    @abstractmethod
    def create_todo(self, request: TodoCreate) -> TodoEntity:
        """Create, persist and return a new pending todo."""

    @abstractmethod
    def update_todo(self, request: TodoUpdate) -> TodoEntity:
        """Overwrite title and description of an existing todo."""

    @abstractmethod
    def delete_todo(self, todo_id: UUID) -> None:
        """Permanently remove a todo. Raise NotFoundError if missing."""

    @abstractmethod
    def toggle_todo(self, todo_id: UUID) -> TodoEntity:
        """Flip the completion flag of an existing todo."""


class DefaultTodoService(TodoService):
    """
    TodoService backed by a Repository.

    Identifiers and timestamps are assigned here, not by the database. The
    clock is injectable so tests can control time; every mutation (update or
    toggle) refreshes updated_at.
    """

    def __init__(self, repository: Repository, clock: Optional[Clock] = None) -> None:
        self._repo = repository
        self._clock = clock or utc_now

    def _now(self, not_before: Optional[datetime] = None) -> datetime:
        now = self._clock()
        if not_before is not None and now < not_before:
            return not_before
        return now

    def find_all_todos(self) -> List[TodoEntity]:
        return self._repo.find_all()

    def find_todo_by_id(self, todo_id: UUID) -> TodoEntity:
        return self._repo.find_by_id(todo_id)

    def create_todo(self, request: TodoCreate) -> TodoEntity:
        now = self._now()
        todo: TodoEntity = {
            "id": uuid.uuid4(),
            "title": request.title,
            "description": request.description,
            "completed": False,
            "created_at": now,
            "updated_at": now,
        }
        self._repo.create(todo)
        logger.info("Created todo %s", todo["id"])
        return todo

    def update_todo(self, request: TodoUpdate) -> TodoEntity:
        todo = self._repo.find_by_id(request.id)
        todo["title"] = request.title
        todo["description"] = request.description
        todo["updated_at"] = self._now(not_before=todo["created_at"])
        self._repo.update(todo)
        logger.info("Updated todo %s", todo["id"])
        return todo

    def delete_todo(self, todo_id: UUID) -> None:
        self._repo.delete(todo_id)
        logger.info("Deleted todo %s", todo_id)

    def toggle_todo(self, todo_id: UUID) -> TodoEntity:
        todo = self._repo.find_by_id(todo_id)
        todo["completed"] = not todo["completed"]
        todo["updated_at"] = self._now(not_before=todo["created_at"])
        self._repo.update(todo)
        logger.info("Todo %s marked %s", todo_id, "completed" if todo["completed"] else "pending")
        return todo
