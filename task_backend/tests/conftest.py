import os

import pytest
from fastapi.testclient import TestClient

# The module-level app in main reads the environment at import time
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from src.task_api.context import OperationContext  # noqa: E402
from src.task_api.main import create_app  # noqa: E402
from src.task_api.settings import Settings  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def settings(request, tmp_path) -> Settings:
    return Settings(
        persistence_backend=request.param,
        database_url=f"sqlite:///{tmp_path / 'tasks.db'}",
        request_timeout=None,
    )


@pytest.fixture()
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture()
def ctx() -> OperationContext:
    return OperationContext.background()
