from __future__ import annotations
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

class TTLCache(Generic[T]):
    """Single-value cache that reloads once ``ttl_s`` has elapsed on ``clock``."""

    def __init__(self, ttl_s: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self._clock = clock
        self._value: Optional[T] = None
        self._loaded_at: Optional[float] = None
        self._lock = threading.Lock()

    def is_fresh(self) -> bool:
        return self._loaded_at is not None and (self._clock() - self._loaded_at) < self.ttl_s

    def get_or_load(self, loader: Callable[[], T]) -> T:
        with self._lock:
            if self.is_fresh():
                return self._value  # type: ignore[return-value]
            value = loader()
            self._value = value
            self._loaded_at = self._clock()
            return value

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._loaded_at = None
