"""
stakepools/guard.py

Non-re-entrant scoped lock for state-mutating entry points.

Operations from different threads are serialized; a nested entry from
the thread that already holds the guard (for example an asset
collaborator calling back into the engine mid-transfer) is rejected.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import ReentrantCall

logger = logging.getLogger("stakepools.guard")


class ReentrancyGuard:
    """Exclusive lock held for the full duration of one operation."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._operation: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """
        Hold the guard for ``operation``; released on every exit path.

        Raises:
            ReentrantCall: If the current thread already holds the guard
        """
        me = threading.get_ident()
        if self._owner == me:
            logger.warning(f"Reentrant {operation} rejected during {self._operation}")
            raise ReentrantCall(f"{operation} called during {self._operation}")
        with self._lock:
            self._owner = me
            self._operation = operation
            try:
                yield
            finally:
                self._owner = None
                self._operation = None
