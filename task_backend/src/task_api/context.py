from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .errors import OperationCancelledError


# PUBLIC_INTERFACE
@dataclass
class OperationContext:
    """
    Request-scoped cancellation and deadline carrier for storage operations.

    deadline is a time.monotonic() timestamp; None means no deadline.
    """

    deadline: Optional[float] = None
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    @classmethod
    def background(cls) -> "OperationContext":
        """A context that never expires unless cancelled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "OperationContext":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancel_event.set()

    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.cancelled() or self.expired()

    def raise_if_done(self) -> None:
        """Raise OperationCancelledError if the context can no longer run work."""
        if self.cancelled():
            raise OperationCancelledError("operation cancelled")
        if self.expired():
            raise OperationCancelledError("deadline exceeded")
