"""
Key-value store backing every counter, ban and pending verification.

Two interchangeable backends implement the same small contract:

  • MemoryStore  – process-local dict, for development and single instances
  • UpstashStore – Redis over the Upstash REST protocol, shared by every
                   instance of the service

Usage::

    store = build_store()
    count = await store.increment("ai:pm:203.0.113.7", 60)
    await store.write("ban:203.0.113.7", "1", 3600)
    await store.close()

Nothing above this module knows which backend is active.  Networked
failures raise StoreUnavailableError; what to do about them is the gate's
decision, not the store's.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from kitchen_gate.config import (
    STORE_TIMEOUT_SECONDS,
    UPSTASH_REDIS_REST_TOKEN,
    UPSTASH_REDIS_REST_URL,
    redis_enabled,
)
from kitchen_gate.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# A write without a TTL still expires eventually: one year.
DEFAULT_TTL_SECONDS = 365 * 24 * 3600

# MemoryStore sweeps expired entries once it holds this many keys.
_PURGE_THRESHOLD = 10_000


class KeyValueStore(Protocol):
    """Protocol that every store backend must satisfy."""

    name: str

    async def increment(self, key: str, window_seconds: int) -> int:
        """
        Atomically add one to the counter at *key* and return the new value.

        The first increment of a window (key absent or expired) yields 1
        and sets the expiry to now + *window_seconds*.
        """
        ...

    async def read(self, key: str) -> str | None:
        """Return the raw value, or None if missing or expired."""
        ...

    async def write(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        """Set *key*; a TTL of 0 means DEFAULT_TTL_SECONDS."""
        ...

    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        ...


# ══════════════════════════════════════════════════════════════════════════
#                          IN-PROCESS BACKEND
# ══════════════════════════════════════════════════════════════════════════


@dataclass
class _Entry:
    value: str
    expires_at: float


class MemoryStore:
    """
    Dict-backed store with per-key expiry.

    None of the methods await between reading and writing an entry, so on
    a single event loop every operation is atomic.  State is lost on
    restart and is not shared between processes.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def _live(self, key: str, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None or now >= entry.expires_at:
            return None
        return entry

    async def increment(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        entry = self._live(key, now)
        if entry is None:
            self._maybe_purge(now)
            self._entries[key] = _Entry(value="1", expires_at=now + window_seconds)
            return 1
        count = (_to_int(entry.value)) + 1
        entry.value = str(count)
        return count

    async def read(self, key: str) -> str | None:
        entry = self._live(key, self._clock())
        return entry.value if entry is not None else None

    async def write(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds > 0 else DEFAULT_TTL_SECONDS
        self._maybe_purge(now)
        self._entries[key] = _Entry(value=value, expires_at=now + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def close(self) -> None:
        self._entries.clear()

    # ── Housekeeping ───────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._entries)

    def _maybe_purge(self, now: float) -> None:
        if len(self._entries) < _PURGE_THRESHOLD:
            return
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        logger.debug("Purged %d expired keys from memory store", len(expired))


def _to_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        return 0


# ══════════════════════════════════════════════════════════════════════════
#                          UPSTASH REST BACKEND
# ══════════════════════════════════════════════════════════════════════════


class UpstashStore:
    """
    Async client for Redis behind the Upstash REST API.

    Commands are posted as JSON arrays (``["GET", "key"]``) to the base URL;
    ``increment`` uses the ``/multi-exec`` transaction endpoint so the
    counter and its expiry are applied together.
    """

    name = "upstash"

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = STORE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── Contract ───────────────────────────────────────────────────────

    async def increment(self, key: str, window_seconds: int) -> int:
        results = await self._post(
            "/multi-exec",
            [
                ["INCR", key],
                ["EXPIRE", key, str(window_seconds), "NX"],
            ],
        )
        if not isinstance(results, list) or not results:
            raise StoreUnavailableError(f"Unexpected transaction reply for {key!r}")
        count = _unwrap(results[0])
        try:
            return int(count)
        except (TypeError, ValueError) as exc:
            raise StoreUnavailableError(f"Non-integer INCR reply for {key!r}: {count!r}") from exc

    async def read(self, key: str) -> str | None:
        value = _unwrap(await self._post("", ["GET", key]))
        return None if value is None else str(value)

    async def write(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        ttl = ttl_seconds if ttl_seconds > 0 else DEFAULT_TTL_SECONDS
        _unwrap(await self._post("", ["SET", key, value, "EX", str(ttl)]))

    async def delete(self, key: str) -> None:
        _unwrap(await self._post("", ["DEL", key]))

    # ── Transport ──────────────────────────────────────────────────────

    async def _post(self, path: str, payload: list) -> Any:
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Upstash request failed: %s", exc)
            raise StoreUnavailableError(str(exc)) from exc
        except ValueError as exc:
            raise StoreUnavailableError("Upstash returned a non-JSON body") from exc


def _unwrap(reply: Any) -> Any:
    """Extract ``result`` from an Upstash reply, raising on ``error``."""
    if not isinstance(reply, dict):
        raise StoreUnavailableError(f"Unexpected Upstash reply: {reply!r}")
    if "error" in reply:
        raise StoreUnavailableError(str(reply["error"]))
    return reply.get("result")


# ── Factory ───────────────────────────────────────────────────────────────


def build_store() -> KeyValueStore:
    """Pick the backend from configuration."""
    if redis_enabled():
        logger.info("Using Upstash store at %s", UPSTASH_REDIS_REST_URL)
        return UpstashStore(UPSTASH_REDIS_REST_URL, UPSTASH_REDIS_REST_TOKEN)
    logger.info("Upstash not configured; using in-memory store (single instance only)")
    return MemoryStore()
