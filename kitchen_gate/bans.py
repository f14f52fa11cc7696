"""
Ban list and violation counting, keyed by client identity.

A ban is a ``ban:<identity>`` key holding "1" with a TTL.  There is no
unban operation: bans lapse on expiry, or an operator deletes the key.

Violations are a fixed-window counter (``viol:<identity>``) of how often
an identity was rate limited recently.  The gate compares the returned
count with its strike threshold to decide on a ban.
"""

from __future__ import annotations

import logging

from kitchen_gate.store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_VIOLATION_WINDOW_SECONDS = 600


def ban_key(identity: str) -> str:
    return f"ban:{identity}"


def violation_key(identity: str) -> str:
    return f"viol:{identity}"


class BanRegistry:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def is_banned(self, identity: str) -> bool:
        return await self._store.read(ban_key(identity)) == "1"

    async def ban(self, identity: str, seconds: int) -> None:
        """Ban *identity* for *seconds*, replacing any remaining ban time."""
        await self._store.write(ban_key(identity), "1", seconds)
        logger.warning("Banned %s for %ds", identity, seconds)


class ViolationTracker:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def record_violation(
        self,
        identity: str,
        window_seconds: int = DEFAULT_VIOLATION_WINDOW_SECONDS,
    ) -> int:
        """Count one violation and return the total inside the current window."""
        count = await self._store.increment(violation_key(identity), window_seconds)
        logger.info("Rate-limit violation #%d for %s", count, identity)
        return count
