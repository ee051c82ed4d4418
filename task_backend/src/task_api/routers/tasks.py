from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ..context import OperationContext
from ..errors import ServiceError, TaskNotFoundError
from ..models import TaskEntity
from ..repositories import TaskFilter
from ..schemas import PageOut, TaskCreate, TaskOut, TaskPatch
from ..service import TaskService
from ..utils import parse_bool_flag, parse_calendar_date, parse_int, parse_positive_int

DEFAULT_LIMIT = 10
DEFAULT_PAGE = 1

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


def get_service(request: Request) -> TaskService:
    """
    Dependency returning the TaskService wired into the application.
    """
    return request.app.state.service


def get_operation_context(request: Request) -> OperationContext:
    """
    Dependency building a fresh storage context bounded by the configured request timeout.
    """
    return OperationContext.with_timeout(request.app.state.settings.request_timeout)


async def _raw_body(request: Request) -> bytes:
    return await request.body()


def _parse_task_id(raw: str) -> int:
    try:
        return parse_int(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid task id")


def _fetch_or_404(service: TaskService, ctx: OperationContext, task_id: int, not_found: str) -> TaskEntity:
    try:
        return service.get_task(ctx, task_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task. title must be non-empty and due_date must be set.",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Malformed body or missing required field"},
        500: {"description": "Storage failure"},
    },
)
def create_task(
    payload: TaskCreate,
    service: TaskService = Depends(get_service),
    ctx: OperationContext = Depends(get_operation_context),
) -> TaskOut:
    """
    Create a new task and return it with its assigned id.
    """
    if not payload.title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title cannot be empty")
    if payload.due_date is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missed data field")

    try:
        created = service.create_task(ctx, payload.to_entity())
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PageOut,
    summary="List Tasks",
    description=(
        "List tasks ordered by due date with optional filters and pagination.\n\n"
        "Query parameters:\n"
        "- completed: filter by completion status\n"
        "- date: filter by calendar date of due_date (YYYY-MM-DD)\n"
        "- limit: tasks per page (default 10)\n"
        "- page: 1-based page number (default 1, clamped to the page count)"
    ),
    responses={
        200: {"description": "Page retrieved successfully"},
        400: {"description": "Invalid filter value"},
        500: {"description": "Storage failure"},
    },
)
def list_tasks(
    completed: Optional[str] = Query(None, description="Filter by completion status"),
    due: Optional[str] = Query(None, alias="date", description="Filter by due date (YYYY-MM-DD)", examples=["2024-06-07"]),
    limit: Optional[str] = Query(None, description="Number of tasks per page"),
    page: Optional[str] = Query(None, description="Page number"),
    service: TaskService = Depends(get_service),
    ctx: OperationContext = Depends(get_operation_context),
) -> PageOut:
    """
    Return one page of tasks matching the filters.
    """
    completed_flag: Optional[bool] = None
    if completed:
        try:
            completed_flag = parse_bool_flag(completed)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid completed flag")

    due_date = None
    if due:
        try:
            due_date = parse_calendar_date(due)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid date format")

    task_filter = TaskFilter(completed=completed_flag, due_date=due_date)
    try:
        result = service.list_tasks(
            ctx,
            task_filter,
            parse_positive_int(limit, DEFAULT_LIMIT),
            parse_positive_int(page, DEFAULT_PAGE),
        )
    except ServiceError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="error retrieving tasks")
    return PageOut.model_validate(result)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by id.",
    responses={
        200: {"description": "Task found"},
        400: {"description": "Invalid id"},
        404: {"description": "Task not found"},
    },
)
def get_task(
    task_id: str,
    service: TaskService = Depends(get_service),
    ctx: OperationContext = Depends(get_operation_context),
) -> TaskOut:
    """
    Retrieve a single task by its id.
    """
    task = _fetch_or_404(service, ctx, _parse_task_id(task_id), TaskNotFoundError.message)
    return TaskOut(**task)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Partially update a task. Recognized keys are title, description, due_date (RFC3339) "
        "and completed; omitted keys keep their stored value, unknown keys and values of the "
        "wrong type are ignored."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Invalid id or malformed JSON"},
        404: {"description": "Task not found"},
        500: {"description": "Unparsable due_date or storage failure"},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {"type": "object", "additionalProperties": True},
                    "example": {"title": "Updated Task", "completed": True},
                }
            },
        }
    },
)
def update_task(
    task_id: str,
    body: bytes = Depends(_raw_body),
    service: TaskService = Depends(get_service),
    ctx: OperationContext = Depends(get_operation_context),
) -> TaskOut:
    """
    Merge the provided fields onto the stored task and save it.
    """
    tid = _parse_task_id(task_id)
    existing = _fetch_or_404(service, ctx, tid, "task not found")

    try:
        updates = json.loads(body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"invalid request body: {e}")
    if updates is None:
        updates = {}
    if not isinstance(updates, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="invalid request body: expected a JSON object"
        )

    try:
        patch = TaskPatch.from_mapping(updates)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    updated = patch.apply(existing)
    try:
        service.update_task(ctx, updated)
    except TaskNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="task not found")
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    summary="Delete Task",
    description="Delete a task by id. Responds 200 with an empty body.",
    responses={
        200: {"description": "Task deleted"},
        400: {"description": "Invalid id"},
        404: {"description": "Task not found"},
        500: {"description": "Storage failure"},
    },
)
def delete_task(
    task_id: str,
    service: TaskService = Depends(get_service),
    ctx: OperationContext = Depends(get_operation_context),
) -> Response:
    """
    Delete a task after checking that it exists.
    """
    tid = _parse_task_id(task_id)
    _fetch_or_404(service, ctx, tid, TaskNotFoundError.message)
    try:
        service.delete_task(ctx, tid)
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return Response(status_code=status.HTTP_200_OK)
