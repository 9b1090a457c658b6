from __future__ import annotations

from typing import Iterable, List
from uuid import UUID

from .errors import ParseError
from .models import TodoEntity

STATUS_COMPLETED = "✅ Completed"
STATUS_PENDING = "❌ Pending"


# PUBLIC_INTERFACE
def parse_todo_id(value: str) -> UUID:
    """Parse a UUID literal given on the command line. Raise ParseError if malformed."""
    try:
        return UUID(value.strip())
    except ValueError as e:
        raise ParseError(value) from e


# PUBLIC_INTERFACE
def filter_todos(todos: Iterable[TodoEntity], completed: bool = False, pending: bool = False) -> List[TodoEntity]:
    """
    Keep todos matching the list flags.

    Args:
        todos: Todos in display order.
        completed: Keep only completed todos.
        pending: Keep only pending todos.

    Returns:
        The retained todos, order preserved. Neither flag keeps everything;
        both flags together keep nothing.
    """
    return [
        t
        for t in todos
        if (not completed or t["completed"]) and (not pending or not t["completed"])
    ]


def truncate(s: str, length: int) -> str:
    if len(s) <= length:
        return s
    return s[: length - 3] + "..."


def status_label(completed: bool) -> str:
    return STATUS_COMPLETED if completed else STATUS_PENDING
