"""
Error taxonomy shared by the storage and service layers.

Storage backends raise StorageError (or a subclass) and never let driver
exceptions escape. The service collapses those into the two client-facing
ServiceError kinds so storage detail does not reach HTTP responses.
"""
from __future__ import annotations


class StorageError(Exception):
    """A persistence operation failed."""


class RecordNotFoundError(StorageError):
    """A write targeted a row that does not exist."""


class OperationCancelledError(StorageError):
    """The operation context was cancelled or its deadline passed."""


class ServiceError(Exception):
    """Base class for errors surfaced by the task service."""

    message = "error on server"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class TaskNotFoundError(ServiceError):
    message = "id not found"


class ServerError(ServiceError):
    message = "error on server"
