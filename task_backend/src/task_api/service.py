from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .context import OperationContext
from .errors import RecordNotFoundError, ServerError, StorageError, TaskNotFoundError
from .models import Page, TaskEntity
from .repositories import Repository, TaskFilter
from .utils import page_count, page_offset

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class TaskService(ABC):
    """Business operations on tasks, independent of transport and storage."""

    @abstractmethod
    def create_task(self, ctx: OperationContext, task: TaskEntity) -> TaskEntity:
        """Persist a new task and return it with its assigned id."""

    @abstractmethod
    def get_task(self, ctx: OperationContext, task_id: int) -> TaskEntity:
        """Return a task or raise TaskNotFoundError."""

    @abstractmethod
    def update_task(self, ctx: OperationContext, task: TaskEntity) -> None:
        """Overwrite a stored task."""

    @abstractmethod
    def delete_task(self, ctx: OperationContext, task_id: int) -> None:
        """Remove a task."""

    @abstractmethod
    def list_tasks(self, ctx: OperationContext, task_filter: TaskFilter, limit: int, page: int) -> Page:
        """Return one page of filtered tasks."""

    @abstractmethod
    def count_tasks(self, ctx: OperationContext, task_filter: TaskFilter) -> int:
        """Return the number of tasks matching the filter."""


class DefaultTaskService(TaskService):
    """
    TaskService backed by a Repository.

    Storage errors are logged and replaced by ServerError so their detail
    never reaches clients.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def create_task(self, ctx: OperationContext, task: TaskEntity) -> TaskEntity:
        try:
            return self._repo.create(ctx, task)
        except StorageError as e:
            logger.error("create error: %s", e)
            raise ServerError() from e

    def get_task(self, ctx: OperationContext, task_id: int) -> TaskEntity:
        try:
            task = self._repo.get(ctx, task_id)
        except StorageError as e:
            logger.error("get error id=%s: %s", task_id, e)
            raise ServerError() from e
        if task is None:
            logger.info("task not found id=%s", task_id)
            raise TaskNotFoundError()
        return task

    def update_task(self, ctx: OperationContext, task: TaskEntity) -> None:
        try:
            self._repo.update(ctx, task)
        except RecordNotFoundError as e:
            logger.info("update of missing task id=%s", task["id"])
            raise TaskNotFoundError() from e
        except StorageError as e:
            logger.error("update error: %s", e)
            raise ServerError() from e

    def delete_task(self, ctx: OperationContext, task_id: int) -> None:
        try:
            self._repo.delete(ctx, task_id)
        except StorageError as e:
            logger.error("delete error: %s", e)
            raise ServerError() from e

    def list_tasks(self, ctx: OperationContext, task_filter: TaskFilter, limit: int, page: int) -> Page:
        total = self.count_tasks(ctx, task_filter)

        pages = page_count(total, limit)
        # With no matching rows this clamps the current page to 0.
        if page > pages:
            page = pages

        try:
            tasks = self._repo.list(ctx, task_filter, limit, page_offset(page, limit))
        except StorageError as e:
            logger.error("error getting list: %s", e)
            raise ServerError() from e

        return {"count_page": pages, "cur_page": page, "tasks": tasks}

    def count_tasks(self, ctx: OperationContext, task_filter: TaskFilter) -> int:
        try:
            return self._repo.count(ctx, task_filter)
        except StorageError as e:
            logger.error("error counting tasks: %s", e)
            raise ServerError() from e
