"""
Email verification that lifts a browser out of the unverified soft gate.

Flow::

    NoSession ──start()──▶ CodeIssued ──verify()──▶ Verified
                               │
                               └── 10 min TTL ──▶ (back to NoSession)

``start`` issues a 4-digit code and an opaque session token.  The code and
the contact address live in the store under the token for ten minutes; the
token itself goes back to the browser as a cookie.  ``verify`` checks a
submitted code against the stored one and, on success, clears the pending
values.  The caller then hands the browser a signed "verified" marker
(a 30-day JWT) which ``is_verified`` checks on later requests.

A wrong code does not consume the pending one.  Guessing is bounded only by
the per-identity limits on the verification endpoints.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from kitchen_gate.config import (
    JWT_ALGORITHM,
    JWT_SECRET,
    VERIFICATION_CODE_TTL_SECONDS,
    VERIFIED_MARKER_DAYS,
)
from kitchen_gate.exceptions import (
    IncorrectCodeError,
    InvalidCodeError,
    InvalidContactError,
    NoPendingVerificationError,
)
from kitchen_gate.store import KeyValueStore

logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"[0-9]{4}")
_EMAIL_RE = re.compile(r".+@.+\..+")


def code_key(session_token: str) -> str:
    return f"verify:code:{session_token}"


def contact_key(session_token: str) -> str:
    return f"verify:email:{session_token}"


def generate_code() -> str:
    """Random code in 1000–9999."""
    return str(1000 + secrets.randbelow(9000))


@dataclass(frozen=True)
class IssuedCode:
    session_token: str
    code: str
    email: str
    expires_in_seconds: int


class VerificationSession:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        code_ttl_seconds: int = VERIFICATION_CODE_TTL_SECONDS,
        marker_days: int = VERIFIED_MARKER_DAYS,
        secret: str = JWT_SECRET,
    ) -> None:
        self._store = store
        self._code_ttl = code_ttl_seconds
        self._marker_days = marker_days
        self._secret = secret

    @property
    def marker_max_age(self) -> int:
        return self._marker_days * 86400

    # ── Issue ──────────────────────────────────────────────────────────

    async def start(self, contact: str) -> IssuedCode:
        """Issue a new code for *contact*; any previous session is left to expire."""
        email = (contact or "").strip()
        if not _EMAIL_RE.search(email):
            raise InvalidContactError()

        code = generate_code()
        token = secrets.token_urlsafe(24)
        await self._store.write(code_key(token), code, self._code_ttl)
        await self._store.write(contact_key(token), email, self._code_ttl)

        logger.info("Verification code issued for %s", email)
        return IssuedCode(
            session_token=token,
            code=code,
            email=email,
            expires_in_seconds=self._code_ttl,
        )

    # ── Verify ─────────────────────────────────────────────────────────

    async def verify(self, session_token: str | None, submitted_code: str) -> str:
        """
        Check *submitted_code* for the session; return the verified contact.

        Raises InvalidCodeError, NoPendingVerificationError or
        IncorrectCodeError.
        """
        code = (submitted_code or "").strip()
        if not _CODE_RE.fullmatch(code):
            raise InvalidCodeError()

        if not session_token:
            raise NoPendingVerificationError()
        stored = await self._store.read(code_key(session_token))
        if not stored:
            raise NoPendingVerificationError()

        if stored != code:
            raise IncorrectCodeError()

        email = await self._store.read(contact_key(session_token)) or ""
        await self._store.delete(code_key(session_token))
        await self._store.delete(contact_key(session_token))
        logger.info("Verification succeeded for %s", email or "<unknown>")
        return email

    # ── Verified marker ────────────────────────────────────────────────

    def issue_marker(self, email: str) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": email,
            "verified": True,
            "iat": now,
            "exp": now + timedelta(days=self._marker_days),
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def is_verified(self, marker: str | None) -> bool:
        if not marker:
            return False
        try:
            payload = jwt.decode(marker, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            return False
        return payload.get("verified") is True
