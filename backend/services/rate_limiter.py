"""Daily request budget per upstream provider.

Limits enforced:
  Open Exchange Rates:  30 req / 24h  (free tier is 1000/month)
  Marketaux:            80 req / 24h  (free tier is 100/day)

The window is lazy: it rolls 24h after it started, checked on every call,
not at midnight. State lives in memory only, so a restart resets the budget.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


@dataclass
class RateWindow:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitStatus:
    used: int
    remaining: int
    reset_time: float

    def to_dict(self) -> dict:
        """Wire format, epoch milliseconds like the rest of the API."""
        return {
            "used": self.used,
            "remaining": self.remaining,
            "resetTime": int(self.reset_time * 1000),
        }


class RateLimiter:
    """Counts upstream calls inside a rolling window. Never blocks."""

    def __init__(
        self,
        name: str,
        daily_limit: int,
        clock: Callable[[], float] = time.time,
        window_seconds: int = DAY_SECONDS,
    ):
        self.name = name
        self.daily_limit = daily_limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._window = RateWindow(count=0, window_start=clock())
        self._lock = threading.Lock()

    def _roll(self) -> None:
        now = self._clock()
        if now - self._window.window_start > self.window_seconds:
            if self._window.count:
                logger.info("%s window rolled, %d requests used", self.name, self._window.count)
            self._window = RateWindow(count=0, window_start=now)

    def allow_request(self) -> bool:
        """Whether one more upstream call fits the budget. Does not consume it."""
        with self._lock:
            self._roll()
            return self._window.count < self.daily_limit

    def record_request(self) -> None:
        with self._lock:
            self._roll()
            self._window.count += 1

    def status(self) -> RateLimitStatus:
        with self._lock:
            self._roll()
            return RateLimitStatus(
                used=self._window.count,
                remaining=max(0, self.daily_limit - self._window.count),
                reset_time=self._window.window_start + self.window_seconds,
            )
