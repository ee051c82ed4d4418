"""
FastAPI task backend package.

Layers, outermost first: routers (HTTP handling), service (use cases and
pagination), repositories/db (storage). Build an application with
src.task_api.main.create_app.
"""
