from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import TaskEntity
from .utils import parse_rfc3339


def _parse_due_date(value: Any) -> Any:
    """
    Normalize incoming due_date strings through the RFC3339 parser.
    Non-string values are left for pydantic to validate.
    """
    if isinstance(value, str):
        return parse_rfc3339(value)
    return value


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for the body of a create request.

    title and due_date have permissive defaults so the handler can report
    missing values with its own messages instead of a schema error.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2024-06-07T15:00:00Z",
                "completed": False,
            }
        }
    )

    # strict: JSON strings and numbers are not coerced to booleans, nor numbers to strings
    title: Optional[str] = Field(default="", strict=True, description="Short title for the task; must not be empty")
    description: Optional[str] = Field(default=None, strict=True, description="Optional detailed description")
    due_date: Optional[datetime] = Field(default=None, description="Due instant as an RFC3339 timestamp")
    completed: bool = Field(default=False, strict=True, description="Completion status flag")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Any) -> Any:
        return _parse_due_date(v)

    def to_entity(self) -> TaskEntity:
        return {
            "id": None,
            "title": self.title or "",
            "description": self.description,
            "due_date": self.due_date,
            "completed": self.completed,
        }


# PUBLIC_INTERFACE
class TaskPatch(BaseModel):
    """
    Partial update of a task.

    Only fields present in model_fields_set are applied; an absent field
    leaves the stored value unchanged.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None

    @classmethod
    def from_mapping(cls, updates: Mapping[str, Any]) -> "TaskPatch":
        """
        Build a patch from a decoded JSON object.

        Unknown keys and values of the wrong JSON type are ignored.
        Raises ValueError when due_date is a string that is not RFC3339.
        """
        fields: dict[str, Any] = {}
        for key in ("title", "description"):
            value = updates.get(key)
            if isinstance(value, str):
                fields[key] = value
        due = updates.get("due_date")
        if isinstance(due, str):
            fields["due_date"] = parse_rfc3339(due)
        completed = updates.get("completed")
        if isinstance(completed, bool):
            fields["completed"] = completed
        return cls(**fields)

    def apply(self, task: TaskEntity) -> TaskEntity:
        """Return a copy of `task` with the present fields overwritten."""
        merged = task.copy()
        for name in self.model_fields_set:
            merged[name] = getattr(self, name)  # type: ignore[literal-required]
        return merged


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2024-06-07T15:00:00Z",
                "completed": False,
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    due_date: Optional[datetime] = Field(default=None, description="Due instant as an RFC3339 timestamp")
    completed: bool = Field(..., description="Completion status flag")


# PUBLIC_INTERFACE
class PageOut(BaseModel):
    """
    One page of tasks with pagination metadata.
    """

    count_page: int = Field(..., description="Total number of pages for the applied filters")
    cur_page: int = Field(..., description="Current page after clamping to count_page")
    tasks: List[TaskOut] = Field(..., description="Tasks on the current page")
