"""
Opportunity Cache

Single-slot, time-bounded cache for the ranked opportunity list. Callers
that miss the cache while a refresh is running share that refresh instead
of starting their own, both across threads and across tasks of one event
loop.
"""

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


class OpportunityCache(Generic[T]):
    """
    Thread-safe single-slot TTL cache.

    Example:
        cache = OpportunityCache(ttl_seconds=300)
        opportunities, cached = cache.get_or_compute(lambda: engine.aggregate(signals))
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            ttl_seconds: Lifetime of a stored value
            clock: Returns the current time in epoch seconds (defaults to
                ``time.time``)
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be non-negative, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._value: Optional[T] = None
        self._stored_at: Optional[float] = None
        self._expires_at: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None

    def _fresh_locked(self) -> bool:
        return self._expires_at is not None and self._clock() < self._expires_at

    def get(self) -> Optional[T]:
        """Return the stored value while it is fresh, else None."""
        with self._lock:
            if self._fresh_locked():
                return self._value
            return None

    def set(self, value: T) -> None:
        """Store a value, replacing any previous one."""
        with self._lock:
            now = self._clock()
            self._value = value
            self._stored_at = now
            self._expires_at = now + self.ttl_seconds
        logger.debug(f"Cached opportunities for {self.ttl_seconds:.0f}s")

    def invalidate(self) -> None:
        """Drop the stored value."""
        with self._lock:
            self._value = None
            self._stored_at = None
            self._expires_at = None
        logger.info("Opportunity cache cleared")

    def status(self) -> Dict[str, Any]:
        """Report whether a fresh value is stored and when it expires."""
        with self._lock:
            if not self._fresh_locked():
                return {"isCached": False, "expiresAt": None, "remainingMs": None}
            remaining_ms = (self._expires_at - self._clock()) * 1000
            expires_at = datetime.fromtimestamp(self._expires_at, tz=timezone.utc)
            return {
                "isCached": True,
                "expiresAt": expires_at.isoformat(),
                "remainingMs": int(remaining_ms),
            }

    def get_or_compute(self, compute: Callable[[], T]) -> Tuple[T, bool]:
        """
        Return the fresh value, or compute and store a new one.

        Only one thread computes at a time; threads that were waiting on it
        receive the value it stored.

        Returns:
            (value, cached) where ``cached`` is False only for the caller
            that ran ``compute``
        """
        value = self.get()
        if value is not None:
            return value, True

        with self._refresh_lock:
            value = self.get()
            if value is not None:
                return value, True
            value = compute()
            self.set(value)
            return value, False

    async def get_or_compute_async(
        self, compute: Callable[[], Awaitable[T]]
    ) -> Tuple[T, bool]:
        """
        Event-loop variant of :meth:`get_or_compute`.

        The first caller to miss starts one task; concurrent callers await
        that same task. A failed refresh stores nothing and raises to every
        waiter.
        """
        value = self.get()
        if value is not None:
            return value, True

        loop = asyncio.get_running_loop()
        task = self._inflight
        if task is not None and not task.done() and task.get_loop() is loop:
            logger.debug("Joining in-flight opportunity refresh")
            value = await asyncio.shield(task)
            return value, True

        async def refresh() -> T:
            result = await compute()
            self.set(result)
            return result

        task = loop.create_task(refresh())
        self._inflight = task
        try:
            value = await asyncio.shield(task)
        finally:
            if self._inflight is task and task.done():
                self._inflight = None
        return value, False
