"""
Fixed-window rate limiting on top of the key-value store.

Every check increments a counter, then compares it to the limit:

    allowed   = current <= limit
    remaining = max(0, limit - current)

The window is fixed, not sliding: a client can fit up to 2× the limit
into one window's worth of time by straddling a boundary.

Limits are written in the usual rate notation and parsed with ``limits``:

  • "10/minute"      – AI assistant burst cap
  • "100/day"        – AI assistant daily quota
  • "300/5 minutes"  – page views
"""

from __future__ import annotations

from dataclasses import dataclass

from limits import parse

from kitchen_gate.store import KeyValueStore


@dataclass(frozen=True)
class Rate:
    """A parsed ``<count>/<period>`` limit."""

    limit: int
    window_seconds: int

    @classmethod
    def parse(cls, rate: str) -> Rate:
        item = parse(rate)
        return cls(limit=item.amount, window_seconds=item.get_expiry())

    def __str__(self) -> str:
        return f"{self.limit}/{self.window_seconds}s"


@dataclass(frozen=True)
class LimitResult:
    allowed: bool
    remaining: int
    limit: int
    current: int
    window_seconds: int

    def headers(self) -> dict[str, str]:
        """Quota metadata for well-behaved clients."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Window": str(self.window_seconds),
        }


class RateLimiter:
    """Fixed-window counter keyed by arbitrary string (IP, purpose, window)."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def check_limit(self, key: str, limit: int, window_seconds: int) -> LimitResult:
        """Count one hit against *key* and report whether it fits the limit."""
        current = await self._store.increment(key, window_seconds)
        return LimitResult(
            allowed=current <= limit,
            remaining=max(0, limit - current),
            limit=limit,
            current=current,
            window_seconds=window_seconds,
        )

    async def hit(self, key: str, rate: Rate) -> LimitResult:
        return await self.check_limit(key, rate.limit, rate.window_seconds)
