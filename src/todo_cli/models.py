from __future__ import annotations

from datetime import datetime
from typing import TypedDict
from uuid import UUID


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    Domain model representing a Todo item as stored in the todos table.

    Fields:
    - id: Unique identifier, generated once at creation
    - title: Short title (1..255 chars, trimmed on input via schemas)
    - description: Optional detailed description; empty string when absent
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp, never mutated
    - updated_at: UTC timestamp refreshed on every update or toggle
    """

    id: UUID
    title: str
    description: str
    completed: bool
    created_at: datetime
    updated_at: datetime
