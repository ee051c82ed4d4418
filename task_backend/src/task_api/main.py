from __future__ import annotations

import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_config import configure_logging
from .repositories import Repository, get_repository
from .routers import tasks as tasks_router
from .service import DefaultTaskService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD operations for tasks with filtering by completion and due date, and pagination.",
    },
]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    """
    Render HTTP errors as a plain-text body carrying the error message.
    """
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    """
    Report malformed or mistyped request input as 400 with a plain-text description.

    Example body:
        invalid request: body.due_date: Value error, invalid due_date 'soon': expected RFC3339 timestamp
    """
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        details.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else str(err.get("msg")))
    return PlainTextResponse("invalid request: " + "; ".join(details), status_code=400)


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, repository: Optional[Repository] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration to use; loaded from the environment when omitted.
        repository: Storage backend to use; built from settings when omitted.

    Returns:
        A FastAPI app with the tasks router, error handlers, CORS and request logging installed.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Task Backend",
        description="HTTP service for creating, updating, deleting and paging through tasks.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.service = DefaultTaskService(repository if repository is not None else get_repository(settings))

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %s in %.1fms", request.method, request.url.path, response.status_code, elapsed_ms
        )
        return response

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(tasks_router.router)
    return app


app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the module-level app with uvicorn on the configured host and port."""
    settings: Settings = app.state.settings
    logger.info("Listening on %s:%s", settings.server_host, settings.server_port)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    run()
