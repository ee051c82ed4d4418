from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TypedDict


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a task record.

    Fields:
    - id: Integer identifier assigned by storage; None until created
    - title: Short title (required and non-empty on create)
    - description: Optional detailed description
    - due_date: Optional due instant (timezone-aware, UTC once stored)
    - completed: Boolean completion flag
    """

    id: Optional[int]
    title: str
    description: Optional[str]
    due_date: Optional[datetime]
    completed: bool


# PUBLIC_INTERFACE
class Page(TypedDict):
    """A slice of tasks plus pagination metadata."""

    count_page: int
    cur_page: int
    tasks: List[TaskEntity]
