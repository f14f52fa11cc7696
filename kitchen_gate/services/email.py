"""
Email service: sends verification codes via SMTP.

In development (no SMTP configured), emails are printed to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from kitchen_gate.config import (
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    VERIFICATION_CODE_TTL_SECONDS,
    smtp_enabled,
)
from kitchen_gate.exceptions import DeliveryError

logger = logging.getLogger(__name__)


def _build_html_body(code: str) -> str:
    minutes = VERIFICATION_CODE_TTL_SECONDS // 60
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <h2>Giuseppe's Kitchen</h2>
      <p>Your verification code is:</p>
      <p style="font-size:2em;font-weight:bold;letter-spacing:0.2em">{code}</p>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        The code expires in {minutes} minutes. If you didn't ask for it, ignore this email.
      </p>
    </body>
    </html>
    """


async def send_verification_code_email(to_email: str, code: str) -> None:
    """
    Send (or log) the verification code.

    If SMTP is not configured, falls back to console output.
    """
    subject = "Your Giuseppe's Kitchen verification code"

    # ── Console fallback (dev mode) ───────────────────────────────────
    if not smtp_enabled():
        logger.info("📧 [DEV] Would send code %s to %s", code, to_email)
        return

    # ── Real SMTP send ────────────────────────────────────────────────
    import aiosmtplib

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = SMTP_FROM_EMAIL
    msg["To"] = to_email

    msg.attach(MIMEText(f"Your verification code is {code}", "plain"))
    msg.attach(MIMEText(_build_html_body(code), "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USERNAME,
            password=SMTP_PASSWORD,
            start_tls=SMTP_USE_TLS,
        )
        logger.info("Verification email sent to %s", to_email)
    except aiosmtplib.SMTPException as exc:
        logger.exception("Failed to send verification email to %s", to_email)
        raise DeliveryError(str(exc)) from exc
