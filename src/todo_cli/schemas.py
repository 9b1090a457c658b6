from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH = 255


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Request for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item", max_length=TITLE_MAX_LENGTH)
    description: str = Field(default="", description="Optional detailed description")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce a non-empty title.
        """
        s = v.strip()
        if not s:
            raise ValueError("title must not be empty")
        return s

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v):
        return "" if v is None else v


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Request for updating an existing Todo item.

    Title and description overwrite the stored values as given, including
    empty strings. Completion status is not part of an update.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b6f7c7e-2f55-4d1c-9a53-8f0a2b8c1d11",
                "title": "Buy groceries and supplies",
                "description": "Milk, eggs, bread, and paper towels",
            }
        }
    )

    id: UUID = Field(..., description="Identifier of the todo item to update")
    title: str = Field(default="", description="New title", max_length=TITLE_MAX_LENGTH)
    description: str = Field(default="", description="New description")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """
        Strip whitespace; an empty title is stored as given.
        """
        return v.strip()
