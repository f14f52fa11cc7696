"""
Site-wide gate middleware.

Every request is checked against the ban list.  Non-asset GET requests also
count against the page-view quota (300 per 5 minutes by default), whose
repeated overruns escalate to a ban just like the assistant's burst limit.
Allowed responses carry the resolved identity in ``X-Client-IP``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from kitchen_gate.config import ASSET_PREFIXES
from kitchen_gate.dependencies import decision_response
from kitchen_gate.gate import GatePipeline, GateProfile
from kitchen_gate.identity import get_client_ip
from kitchen_gate.policies import BAN_ONLY, PAGE_VIEWS

logger = logging.getLogger(__name__)


def is_asset(path: str) -> bool:
    return path.startswith(ASSET_PREFIXES)


class PageGateMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        page_profile: GateProfile = PAGE_VIEWS,
        ban_profile: GateProfile = BAN_ONLY,
    ) -> None:
        super().__init__(app)
        self.page_profile = page_profile
        self.ban_profile = ban_profile

    async def dispatch(self, request: Request, call_next: Callable):
        pipeline: GatePipeline = request.app.state.gate
        identity = get_client_ip(request)

        path = request.url.path or "/"
        if request.method == "GET" and not is_asset(path):
            profile = self.page_profile
        else:
            profile = self.ban_profile

        decision = await pipeline.evaluate(identity, profile)
        if not decision.allowed:
            logger.info("%s gate: %s for %s %s", profile.name, decision.outcome.value, identity, path)
            return decision_response(decision)

        response = await call_next(request)
        response.headers["X-Client-IP"] = identity
        return response
