"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).

Quota policies use the ``"<count>/<period>"`` rate notation
(e.g. ``"10/minute"``, ``"300/5 minutes"``) and are parsed with the
``limits`` library where the gate profiles are assembled.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

VERSION = "0.1.0"

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Key-value store ───────────────────────────────────────────────────────

# Upstash Redis REST credentials.  When both are set the networked store is
# used; otherwise counters live in process memory (single instance only).
UPSTASH_REDIS_REST_URL: str = os.getenv("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN: str = os.getenv("UPSTASH_REDIS_REST_TOKEN", "")

# Upper bound for a single round-trip to the networked store.
STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "1.5"))

# What the gate does when the store cannot be reached:
#   • "open"   (default): let the request through, log a warning
#   • "closed": refuse the request with 503
STORE_FAILURE_MODE: str = os.getenv("STORE_FAILURE_MODE", "open").lower()


def store_fail_open() -> bool:
    """True when store outages should let requests through."""
    return STORE_FAILURE_MODE != "closed"


def redis_enabled() -> bool:
    return bool(UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN)


# ── Page-view gate ────────────────────────────────────────────────────────

PAGE_VIEW_LIMIT: str = os.getenv("PAGE_VIEW_LIMIT", "300/5 minutes")

# Path prefixes that never count against the page-view quota.
ASSET_PREFIXES: tuple[str, ...] = ("/static/", "/videos/", "/images/", "/favicon")

# ── AI assistant gate ─────────────────────────────────────────────────────

AI_MINUTE_LIMIT: str = os.getenv("AI_MINUTE_LIMIT", "10/minute")
AI_DAILY_LIMIT: str = os.getenv("AI_DAILY_LIMIT", "100/day")

# Free replies before an unverified browser has to confirm an email address.
SIGNUP_GATE_LIMIT: str = os.getenv("SIGNUP_GATE_LIMIT", "7/day")

# ── Escalation ────────────────────────────────────────────────────────────

ESCALATION_WINDOW_SECONDS: int = int(os.getenv("ESCALATION_WINDOW_SECONDS", "600"))
ESCALATION_STRIKES: int = int(os.getenv("ESCALATION_STRIKES", "3"))
ESCALATION_BAN_SECONDS: int = int(os.getenv("ESCALATION_BAN_SECONDS", "3600"))

# Crossing the daily AI quota bans straight away for this long.
DAILY_QUOTA_BAN_SECONDS: int = int(os.getenv("DAILY_QUOTA_BAN_SECONDS", str(24 * 3600)))

# ── Verification ──────────────────────────────────────────────────────────

VERIFY_START_LIMIT: str = os.getenv("VERIFY_START_LIMIT", "5/hour")
# Caps code guesses per identity; a wrong code does not consume the pending one.
VERIFY_SUBMIT_LIMIT: str = os.getenv("VERIFY_SUBMIT_LIMIT", "5/hour")
# Read-only; reveals only whether the caller holds a valid marker.
VERIFY_STATUS_LIMIT: str = os.getenv("VERIFY_STATUS_LIMIT", "60/minute")

VERIFICATION_CODE_TTL_SECONDS: int = 10 * 60
VERIFIED_MARKER_DAYS: int = int(os.getenv("VERIFIED_MARKER_DAYS", "30"))

# ── JWT (verified marker) ─────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"

# ── Text generation ───────────────────────────────────────────────────────

OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
OPENAI_TIMEOUT_SECONDS: float = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30"))
OPENAI_MAX_TOKENS: int = int(os.getenv("OPENAI_MAX_TOKENS", "260"))

# YAML file with the recipe catalog injected into assistant prompts.
RECIPES_PATH: str = os.getenv("RECIPES_PATH", str(PROJECT_ROOT / "data" / "recipes.yaml"))

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@giuseppes-kitchen.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default): send if credentials are configured
      • "true": always send (will fail if credentials are missing)
      • "false": never send, print to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)
