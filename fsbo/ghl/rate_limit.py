"""In-memory request budget for GHL API calls."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict, deque
from datetime import date, datetime, timezone

from ..config import settings


class DailyLimitExceeded(Exception):
    """Raised when a key has used its daily request allowance."""

    def __init__(self, key: str, limit: int):
        self.key = key
        self.limit = limit
        super().__init__(f"Daily GHL request limit of {limit} reached for {key}")


class RequestBudget:
    """Sliding-window burst limiter plus a per-day counter, keyed by location.

    ``acquire`` waits (without busy-looping) until a burst slot is free, and
    raises ``DailyLimitExceeded`` once the day's allowance is spent.
    """

    def __init__(
        self,
        burst_limit: int | None = None,
        window_seconds: float | None = None,
        daily_limit: int | None = None,
    ) -> None:
        self.burst_limit = burst_limit or settings.ghl_burst_limit
        self.window_seconds = window_seconds or settings.ghl_burst_window_seconds
        self.daily_limit = daily_limit or settings.ghl_daily_limit
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._daily: dict[str, tuple[date, int]] = {}
        self._lock = asyncio.Lock()

    def _prune(self, now: float, today: date) -> None:
        """Forget keys with no calls in the window and counters from earlier days."""
        cutoff = now - self.window_seconds
        idle = [k for k, events in self._events.items() if not events or events[-1] <= cutoff]
        for key in idle:
            del self._events[key]
        stale = [k for k, (day, _) in self._daily.items() if day != today]
        for key in stale:
            del self._daily[key]

    async def allow(self, key: str) -> tuple[bool, float]:
        """Return (allowed, retry_after_seconds), recording the call when allowed."""
        now = time.monotonic()
        async with self._lock:
            today = datetime.now(timezone.utc).date()
            self._prune(now, today)
            _, used = self._daily.get(key, (today, 0))
            if used >= self.daily_limit:
                raise DailyLimitExceeded(key, self.daily_limit)

            events = self._events[key]
            cutoff = now - self.window_seconds
            while events and events[0] <= cutoff:
                events.popleft()

            if len(events) >= self.burst_limit:
                retry_after = max(0.01, events[0] + self.window_seconds - now)
                return False, retry_after

            events.append(now)
            self._daily[key] = (today, used + 1)
            return True, 0.0

    async def acquire(self, key: str) -> None:
        while True:
            allowed, retry_after = await self.allow(key)
            if allowed:
                return
            await asyncio.sleep(retry_after)

    def used_today(self, key: str) -> int:
        day, used = self._daily.get(key, (None, 0))
        if day != datetime.now(timezone.utc).date():
            return 0
        return used


ghl_request_budget = RequestBudget()
