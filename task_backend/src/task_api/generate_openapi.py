"""
Utility script to generate and write the OpenAPI schema for the task API.

The schema is built from an application created with in-memory storage so
generating documentation never touches a database. By default it is written
to <container_root>/interfaces/openapi.json.

Usage:
    python -m src.task_api.generate_openapi [output_path]
"""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .main import create_app, openapi_tags
from .repositories import InMemoryRepository
from .settings import get_settings

logger = logging.getLogger(__name__)


def _default_output_path() -> str:
    script_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))  # points to .../src
    container_root = os.path.dirname(script_dir)
    return os.path.join(container_root, "interfaces", "openapi.json")


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata without
    overriding tags that are already defined.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def build_schema() -> Dict[str, Any]:
    """Return the OpenAPI schema of the task API."""
    settings = replace(get_settings(), persistence_backend="memory")
    app = create_app(settings, repository=InMemoryRepository())
    schema = app.openapi()
    _ensure_tags(schema)
    return schema


# PUBLIC_INTERFACE
def main(out_path: Optional[str] = None) -> str:
    """
    Write the OpenAPI schema to `out_path` (default interfaces/openapi.json),
    creating directories as needed. Returns the written path.
    """
    out_path = out_path or _default_output_path()
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(build_schema(), f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to: %s", out_path)
    return out_path


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
