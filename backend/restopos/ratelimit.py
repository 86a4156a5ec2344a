"""
Pluggable rate limiting for the login endpoint.

``StorageRateLimiter`` counts hits in fixed windows using the ``limits``
package (the engine behind slowapi). Its storage comes from a URI:
``memory://`` keeps counters inside one process, while ``redis://host:6379``
shares them between workers.
"""

from abc import ABC, abstractmethod

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter


class RateLimiter(ABC):
    """Abstract limiter: ``attempt`` records one hit and says whether it is allowed."""

    @abstractmethod
    def attempt(self, key: str) -> bool:
        pass

    @abstractmethod
    def reset(self, key: str) -> None:
        pass


class StorageRateLimiter(RateLimiter):
    """Fixed window of ``limit`` hits per ``window_seconds`` for each key."""

    def __init__(self, limit: int, window_seconds: int, storage_uri: str = "memory://", namespace: str = "restopos"):
        self.limit = limit
        self.window_seconds = window_seconds
        self.namespace = namespace
        self.item = RateLimitItemPerSecond(limit, window_seconds)
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    def attempt(self, key: str) -> bool:
        return self.strategy.hit(self.item, self.namespace, key)

    def reset(self, key: str) -> None:
        self.strategy.clear(self.item, self.namespace, key)

    def __repr__(self):
        return f"<StorageRateLimiter({self.item}, storage={type(self.storage).__name__})>"
