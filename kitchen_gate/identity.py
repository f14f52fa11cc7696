"""
Best-effort client identity for quota and ban partitioning.

Resolution order:
  1. the transport-level peer address
  2. the first entry of X-Forwarded-For
  3. X-Real-IP
  4. "0.0.0.0"

The headers are only trustworthy when an edge proxy sets them and strips
client-supplied copies.  Run uvicorn with ``--proxy-headers`` and a
``--forwarded-allow-ips`` list of the proxies so that (1) already reflects
the real client; anywhere else a client can pick its own identity.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

FALLBACK_IDENTITY = "0.0.0.0"


def get_client_ip(request: Request) -> str:
    if request.client is not None and request.client.host:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return FALLBACK_IDENTITY


ClientIdentity = Annotated[str, Depends(get_client_ip)]
