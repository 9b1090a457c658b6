from __future__ import annotations

from uuid import UUID


class TodoError(Exception):
    """Base class for expected todo errors."""


class NotFoundError(TodoError):
    def __init__(self, todo_id: UUID) -> None:
        super().__init__(f"todo {todo_id} not found")
        self.todo_id = todo_id


class ConflictError(TodoError):
    def __init__(self, todo_id: UUID) -> None:
        super().__init__(f"todo {todo_id} already exists")
        self.todo_id = todo_id


class ParseError(TodoError):
    """Raised when a todo id given on the command line is not a valid UUID."""

    def __init__(self, value: str) -> None:
        super().__init__(f"invalid UUID {value!r}")
        self.value = value


class ConnectivityError(TodoError):
    """The database cannot be reached. Fatal to the current invocation."""


class StorageError(TodoError):
    """Any other failure reported by the database driver."""
