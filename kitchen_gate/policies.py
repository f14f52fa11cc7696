"""
Gate profiles used by the application, assembled from configuration.

  • PAGE_VIEWS       – every non-asset GET (middleware)
  • BAN_ONLY         – every other request (middleware)
  • AI_ASSISTANT     – POST /api/kitchen-ai
  • VERIFY_START     – POST /api/auth/start
  • VERIFY_SUBMIT    – POST /api/auth/verify
  • VERIFY_STATUS    – GET  /api/auth/status
"""

from __future__ import annotations

from kitchen_gate.config import (
    AI_DAILY_LIMIT,
    AI_MINUTE_LIMIT,
    DAILY_QUOTA_BAN_SECONDS,
    ESCALATION_BAN_SECONDS,
    ESCALATION_STRIKES,
    ESCALATION_WINDOW_SECONDS,
    PAGE_VIEW_LIMIT,
    SIGNUP_GATE_LIMIT,
    VERIFY_START_LIMIT,
    VERIFY_STATUS_LIMIT,
    VERIFY_SUBMIT_LIMIT,
)
from kitchen_gate.gate import GateProfile, ImmediateBan, QuotaPolicy, StrikeEscalation
from kitchen_gate.rate_limit import Rate

STRIKES = StrikeEscalation(
    strikes=ESCALATION_STRIKES,
    window_seconds=ESCALATION_WINDOW_SECONDS,
    ban_seconds=ESCALATION_BAN_SECONDS,
)

_page_views = Rate.parse(PAGE_VIEW_LIMIT)

PAGE_VIEWS = GateProfile(
    name="page-views",
    policies=(
        QuotaPolicy(
            prefix="pv",
            rate=_page_views,
            escalation=STRIKES,
            message="Too many requests",
            suffix=f":{_page_views.window_seconds}s",
        ),
    ),
)

BAN_ONLY = GateProfile(name="ban-check")

AI_ASSISTANT = GateProfile(
    name="kitchen-ai",
    soft_gate=QuotaPolicy(
        prefix="gate:msgs",
        rate=Rate.parse(SIGNUP_GATE_LIMIT),
        message="signup_required",
    ),
    policies=(
        QuotaPolicy(
            prefix="ai:pm",
            rate=Rate.parse(AI_MINUTE_LIMIT),
            escalation=STRIKES,
            message="Rate limit exceeded",
        ),
        QuotaPolicy(
            prefix="ai:pd",
            rate=Rate.parse(AI_DAILY_LIMIT),
            escalation=ImmediateBan(ban_seconds=DAILY_QUOTA_BAN_SECONDS),
            message="Daily quota reached",
        ),
    ),
)

VERIFY_START = GateProfile(
    name="verify-start",
    policies=(
        QuotaPolicy(
            prefix="auth:start",
            rate=Rate.parse(VERIFY_START_LIMIT),
            message="Too many attempts",
        ),
    ),
)

VERIFY_SUBMIT = GateProfile(
    name="verify-submit",
    policies=(
        QuotaPolicy(
            prefix="auth:verify",
            rate=Rate.parse(VERIFY_SUBMIT_LIMIT),
            message="Too many attempts",
        ),
    ),
)

VERIFY_STATUS = GateProfile(
    name="verify-status",
    policies=(
        QuotaPolicy(
            prefix="auth:status",
            rate=Rate.parse(VERIFY_STATUS_LIMIT),
            message="Too many requests",
        ),
    ),
)
