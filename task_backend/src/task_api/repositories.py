from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from threading import RLock
from typing import List, Optional

from .context import OperationContext
from .errors import RecordNotFoundError
from .models import TaskEntity
from .settings import Settings
from .utils import to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskFilter:
    """
    Optional equality filters for listing and counting tasks.
    Present filters are ANDed together.
    """
    completed: Optional[bool] = None
    due_date: Optional[date] = None

    def matches(self, task: TaskEntity) -> bool:
        if self.completed is not None and task["completed"] != self.completed:
            return False
        if self.due_date is not None:
            due = task["due_date"]
            if due is None or to_utc(due).date() != self.due_date:
                return False
        return True


def due_date_sort_key(task: TaskEntity) -> tuple:
    """Ascending by due date, tasks without one last, ties by id."""
    due = task["due_date"]
    return (due is None, to_utc(due) if due is not None else datetime.min, task["id"] or 0)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    def create(self, ctx: OperationContext, task: TaskEntity) -> TaskEntity:
        """Insert a task, set its assigned id and return it."""

    @abstractmethod
    def get(self, ctx: OperationContext, task_id: int) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def update(self, ctx: OperationContext, task: TaskEntity) -> None:
        """Overwrite every mutable field of the row identified by task['id'].
        Raises RecordNotFoundError when no such row exists."""

    @abstractmethod
    def delete(self, ctx: OperationContext, task_id: int) -> None:
        """Delete a task by id. Deleting a missing id is not an error."""

    @abstractmethod
    def list(self, ctx: OperationContext, task_filter: TaskFilter, limit: int, offset: int) -> List[TaskEntity]:
        """
        Return the tasks matching `task_filter`, ordered by due date ascending,
        sliced by limit/offset.
        """

    @abstractmethod
    def count(self, ctx: OperationContext, task_filter: TaskFilter) -> int:
        """Return the number of tasks matching `task_filter`."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and local runs.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    @staticmethod
    def _stored(task: TaskEntity) -> TaskEntity:
        stored = task.copy()
        if stored["due_date"] is not None:
            stored["due_date"] = to_utc(stored["due_date"])
        return stored

    def create(self, ctx: OperationContext, task: TaskEntity) -> TaskEntity:
        ctx.raise_if_done()
        task["id"] = self._allocate_id()
        with self._lock:
            self._items[task["id"]] = self._stored(task)
        return task

    def get(self, ctx: OperationContext, task_id: int) -> Optional[TaskEntity]:
        ctx.raise_if_done()
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def update(self, ctx: OperationContext, task: TaskEntity) -> None:
        ctx.raise_if_done()
        task_id = task["id"]
        with self._lock:
            if task_id not in self._items:
                raise RecordNotFoundError(f"task {task_id} does not exist")
            self._items[task_id] = self._stored(task)  # type: ignore[index]

    def delete(self, ctx: OperationContext, task_id: int) -> None:
        ctx.raise_if_done()
        with self._lock:
            self._items.pop(task_id, None)

    def list(self, ctx: OperationContext, task_filter: TaskFilter, limit: int, offset: int) -> List[TaskEntity]:
        ctx.raise_if_done()
        with self._lock:
            items = [t for t in self._items.values() if task_filter.matches(t)]
            items.sort(key=due_date_sort_key)
            start = max(offset, 0)
            end = start + max(limit, 0)
            # Return copies to avoid external mutation
            return [t.copy() for t in items[start:end]]

    def count(self, ctx: OperationContext, task_filter: TaskFilter) -> int:
        ctx.raise_if_done()
        with self._lock:
            return sum(1 for t in self._items.values() if task_filter.matches(t))


# PUBLIC_INTERFACE
def get_repository(settings: Settings) -> Repository:
    """
    Build the repository selected by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at settings.database_url
    """
    if settings.persistence_backend == "memory":
        logger.info("Using in-memory task repository")
        return InMemoryRepository()

    from .db import SQLiteRepository

    return SQLiteRepository(settings.database_url)
