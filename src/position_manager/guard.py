"""
Single serialization point for a manager instance.

Every public operation runs inside OperationGuard:
- one threading.Lock per manager serializes callers on different threads
- the owner-thread marker detects re-entry from the same thread (a token
  hook calling back into the manager mid-operation) and rejects it with
  ReentrancyError instead of deadlocking
"""

import functools
import threading
from typing import Optional

from .errors import ReentrancyError


class OperationGuard:
    """Non-reentrant exclusive lock over the whole ledger."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._operation: Optional[str] = None

    @property
    def active_operation(self) -> Optional[str]:
        return self._operation

    def enter(self, operation: str) -> None:
        if self._owner == threading.get_ident():
            raise ReentrancyError(
                f"{operation} called while {self._operation} is in progress"
            )
        self._lock.acquire()
        self._owner = threading.get_ident()
        self._operation = operation

    def exit(self) -> None:
        self._owner = None
        self._operation = None
        self._lock.release()


def non_reentrant(method):
    """Run a manager method under its OperationGuard (self._guard)."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self._guard.enter(method.__name__)
        try:
            return method(self, *args, **kwargs)
        finally:
            self._guard.exit()

    return wrapper
