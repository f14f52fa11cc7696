import logging
from typing import Annotated

from fastapi import Cookie, Depends, Request, Response
from fastapi.responses import JSONResponse

from kitchen_gate.config import ENVIRONMENT, VERIFICATION_CODE_TTL_SECONDS
from kitchen_gate.gate import GateDecision, GateOutcome, GatePipeline, GateProfile
from kitchen_gate.identity import ClientIdentity
from kitchen_gate.services.assistant import TextGenerator
from kitchen_gate.services.recipes import RecipeCatalog
from kitchen_gate.verification import VerificationSession

logger = logging.getLogger(__name__)

SESSION_COOKIE = "ai_gate_token"
VERIFIED_COOKIE = "ai_verified"


# ── App-scoped services ────────────────────────────────────────────────────


def get_pipeline(request: Request) -> GatePipeline:
    return request.app.state.gate


def get_verification(request: Request) -> VerificationSession:
    return request.app.state.verification


def get_generator(request: Request) -> TextGenerator:
    return request.app.state.generator


def get_catalog(request: Request) -> RecipeCatalog:
    return request.app.state.catalog


Pipeline = Annotated[GatePipeline, Depends(get_pipeline)]
Verification = Annotated[VerificationSession, Depends(get_verification)]
Generator = Annotated[TextGenerator, Depends(get_generator)]
Catalog = Annotated[RecipeCatalog, Depends(get_catalog)]


# ── Gate ───────────────────────────────────────────────────────────────────


class GateDenied(Exception):
    """Raised by gate dependencies; rendered by gate_denied_handler."""

    def __init__(self, decision: GateDecision) -> None:
        super().__init__(decision.message)
        self.decision = decision


_STATUS = {
    GateOutcome.FORBIDDEN: 403,
    GateOutcome.SIGNUP_REQUIRED: 429,
    GateOutcome.RATE_LIMITED: 429,
    GateOutcome.UNAVAILABLE: 503,
}


def decision_response(decision: GateDecision) -> JSONResponse:
    """Translate a denying decision into the client-facing JSON response."""
    body: dict = {"error": decision.message}
    headers: dict[str, str] = {}
    if decision.outcome is GateOutcome.SIGNUP_REQUIRED:
        body["require_signup"] = True
    elif decision.outcome is GateOutcome.RATE_LIMITED and decision.limit is not None:
        headers = decision.limit.headers()
    return JSONResponse(body, status_code=_STATUS[decision.outcome], headers=headers)


async def gate_denied_handler(request: Request, exc: GateDenied) -> JSONResponse:
    return decision_response(exc.decision)


def is_verified_request(request: Request) -> bool:
    marker = request.cookies.get(VERIFIED_COOKIE)
    return get_verification(request).is_verified(marker)


def require_gate(profile: GateProfile):
    """
    Dependency factory: run *profile* for the calling identity and raise
    GateDenied on anything but ALLOWED.
    """

    async def _check(
        request: Request,
        identity: ClientIdentity,
        pipeline: Pipeline,
    ) -> GateDecision:
        verified = is_verified_request(request) if profile.soft_gate is not None else False
        decision = await pipeline.evaluate(identity, profile, verified=verified)
        if not decision.allowed:
            logger.info("%s gate: %s for %s", profile.name, decision.outcome.value, identity)
            raise GateDenied(decision)
        return decision

    return _check


# ── Cookies ────────────────────────────────────────────────────────────────


SessionToken = Annotated[str | None, Cookie(alias=SESSION_COOKIE)]
VerifiedMarker = Annotated[str | None, Cookie(alias=VERIFIED_COOKIE)]


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=ENVIRONMENT == "production",
        max_age=VERIFICATION_CODE_TTL_SECONDS,
    )


def set_verified_cookie(response: Response, marker: str, max_age: int) -> None:
    response.set_cookie(
        key=VERIFIED_COOKIE,
        value=marker,
        httponly=True,
        samesite="lax",
        secure=ENVIRONMENT == "production",
        max_age=max_age,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE)
