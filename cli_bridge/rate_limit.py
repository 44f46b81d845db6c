"""
CLI Bridge: Sliding-window rate limiter.
State lives in a WindowStore so it can be swapped for a shared backend; the
default keeps it in memory for the lifetime of the process.
"""
import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional, Protocol

from . import config

logger = logging.getLogger(__name__)


class WindowStore(Protocol):
    def get(self, key: str) -> List[float]:
        ...

    def prune(self, key: str, cutoff: float) -> List[float]:
        """Drop timestamps at or before cutoff and return what is left."""
        ...

    def append(self, key: str, timestamp: float) -> None:
        ...


class InMemoryWindowStore:
    def __init__(self):
        self._windows: Dict[str, List[float]] = {}

    def get(self, key: str) -> List[float]:
        return list(self._windows.get(key, []))

    def prune(self, key: str, cutoff: float) -> List[float]:
        recent = [ts for ts in self._windows.get(key, []) if ts > cutoff]
        self._windows[key] = recent
        return list(recent)

    def append(self, key: str, timestamp: float) -> None:
        self._windows.setdefault(key, []).append(timestamp)


class RateLimiter:
    """
    admit() prunes the client's window, then records and admits the request
    if fewer than max_requests remain. Nothing is queued.
    """

    def __init__(
        self,
        store: Optional[WindowStore] = None,
        window_s: float = config.RATE_LIMIT_WINDOW_S,
        max_requests: int = config.RATE_LIMIT_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store if store is not None else InMemoryWindowStore()
        self.window_s = window_s
        self.max_requests = max_requests
        self._clock = clock
        # Sync endpoints run in a threadpool
        self._lock = threading.Lock()

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.window_s))

    def admit(self, client_id: str) -> bool:
        with self._lock:
            now = self._clock()
            recent = self.store.prune(client_id, now - self.window_s)
            if len(recent) >= self.max_requests:
                logger.warning("Rate limit exceeded for %s", client_id)
                return False
            self.store.append(client_id, now)
            return True
