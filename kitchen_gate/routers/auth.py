"""
Verification endpoints – email code flow that lifts the assistant's soft gate.
"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from kitchen_gate.config import ENVIRONMENT
from kitchen_gate.dependencies import (
    SessionToken,
    Verification,
    VerifiedMarker,
    clear_session_cookie,
    require_gate,
    set_session_cookie,
    set_verified_cookie,
)
from kitchen_gate.exceptions import (
    DeliveryError,
    IncorrectCodeError,
    StoreUnavailableError,
    VerificationError,
)
from kitchen_gate.models import (
    ErrorResponse,
    OkResponse,
    VerificationStartRequest,
    VerificationStartResponse,
    VerificationStatusResponse,
    VerificationSubmitRequest,
)
from kitchen_gate.policies import VERIFY_START, VERIFY_STATUS, VERIFY_SUBMIT
from kitchen_gate.services.email import send_verification_code_email

router = APIRouter(prefix="/api/auth", tags=["auth"])

_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post(
    "/start",
    response_model=VerificationStartResponse,
    responses=_ERRORS,
    operation_id="startVerification",
    summary="Issue a 4-digit code for the given email address",
    dependencies=[Depends(require_gate(VERIFY_START))],
)
async def start_verification(
    body: VerificationStartRequest,
    response: Response,
    verification: Verification,
):
    """
    Issue a code and bind it to this browser via the session cookie.
    In dev mode the code is also returned as ``dev_code``.
    """
    try:
        issued = await verification.start(body.email)
        await send_verification_code_email(issued.email, issued.code)
    except VerificationError as exc:
        return _error(str(exc), status.HTTP_400_BAD_REQUEST)
    except (StoreUnavailableError, DeliveryError):
        return _error("Failed to start verification", status.HTTP_503_SERVICE_UNAVAILABLE)

    set_session_cookie(response, issued.session_token)
    return VerificationStartResponse(
        expires_in_seconds=issued.expires_in_seconds,
        dev_code=issued.code if ENVIRONMENT != "production" else None,
    )


@router.get(
    "/status",
    response_model=VerificationStatusResponse,
    responses=_ERRORS,
    operation_id="getVerificationStatus",
    summary="Whether this browser has verified an email address",
    dependencies=[Depends(require_gate(VERIFY_STATUS))],
)
async def verification_status(
    verification: Verification,
    marker: VerifiedMarker = None,
) -> VerificationStatusResponse:
    return VerificationStatusResponse(verified=verification.is_verified(marker))


@router.post(
    "/verify",
    response_model=OkResponse,
    responses={**_ERRORS, 401: {"model": ErrorResponse}},
    operation_id="submitVerificationCode",
    summary="Submit the emailed code and mark this browser as verified",
    dependencies=[Depends(require_gate(VERIFY_SUBMIT))],
)
async def submit_verification(
    body: VerificationSubmitRequest,
    response: Response,
    verification: Verification,
    session_token: SessionToken = None,
):
    try:
        email = await verification.verify(session_token, body.code)
    except IncorrectCodeError as exc:
        return _error(str(exc), status.HTTP_401_UNAUTHORIZED)
    except VerificationError as exc:
        return _error(str(exc), status.HTTP_400_BAD_REQUEST)
    except StoreUnavailableError:
        return _error("Failed to verify code", status.HTTP_503_SERVICE_UNAVAILABLE)

    set_verified_cookie(
        response,
        verification.issue_marker(email),
        max_age=verification.marker_max_age,
    )
    clear_session_cookie(response)
    return OkResponse()
