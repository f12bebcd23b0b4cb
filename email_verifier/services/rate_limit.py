"""Per-email fixed-window rate limiting for code issuance."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Protocol

from email_verifier.core.clock import Clock, now_ms
from email_verifier.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    window_start: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check; `reset_at` is in epoch seconds."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class RateLimitStore(Protocol):
    """Backing map for window counters, swappable for a shared counter service."""

    def get(self, key: str) -> RateLimitRecord | None:
        ...

    def set(self, key: str, record: RateLimitRecord) -> None:
        ...

    def prune(self, oldest_window_start: int) -> int:
        """Drop records whose window started before `oldest_window_start`."""

    def clear(self) -> None:
        ...


class MemoryRateLimitStore:
    """Dict-backed counters; lost on restart and private to this process."""

    def __init__(self) -> None:
        self._records: dict[str, RateLimitRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get(self, key: str) -> RateLimitRecord | None:
        return self._records.get(key)

    def set(self, key: str, record: RateLimitRecord) -> None:
        self._records[key] = record

    def prune(self, oldest_window_start: int) -> int:
        stale = [key for key, r in self._records.items() if r.window_start < oldest_window_start]
        for key in stale:
            del self._records[key]
        return len(stale)

    def clear(self) -> None:
        self._records.clear()


class RateLimiter:
    """Admit at most `max_requests` per email within each `window_ms` window.

    Runs entirely inside one event-loop step, so no locking is needed while
    the application is served by a single asyncio loop.
    """

    def __init__(
        self,
        window_ms: int = settings.RATE_LIMIT_WINDOW_MS,
        max_requests: int = settings.RATE_LIMIT_MAX_REQUESTS,
        store: RateLimitStore | None = None,
        clock: Clock = now_ms,
    ):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.store = store if store is not None else MemoryRateLimitStore()
        self.clock = clock
        self._last_prune = clock()

    def _reset_at(self, record: RateLimitRecord) -> int:
        return math.ceil((record.window_start + self.window_ms) / 1000)

    def _prune_if_due(self, now: int) -> None:
        if now - self._last_prune < self.window_ms:
            return
        removed = self.store.prune(now - self.window_ms)
        self._last_prune = now
        if removed:
            logger.debug("Pruned %d expired rate-limit windows", removed)

    def admit(self, email: str) -> RateLimitDecision:
        now = self.clock()
        self._prune_if_due(now)

        record = self.store.get(email)
        if record is None or now - record.window_start > self.window_ms:
            record = RateLimitRecord(count=1, window_start=now)
            self.store.set(email, record)
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - 1,
                reset_at=self._reset_at(record),
            )

        if record.count >= self.max_requests:
            retry_after = max(1, math.ceil((record.window_start + self.window_ms - now) / 1000))
            logger.info("Rate limit exceeded for %s; retry after %ss", email, retry_after)
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_at=self._reset_at(record),
                retry_after=retry_after,
            )

        record.count += 1
        self.store.set(email, record)
        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - record.count,
            reset_at=self._reset_at(record),
        )
