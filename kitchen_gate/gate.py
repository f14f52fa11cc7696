"""
Per-request gate: the ordered checks every gated request goes through.

    1. ban check           → FORBIDDEN          (terminal)
    2. soft usage gate     → SIGNUP_REQUIRED    (only for unverified clients,
                                                 only where a profile has one)
    3. quota policies      → RATE_LIMITED       (first denial wins; may ban)
    4. pass                → ALLOWED

Every check that runs increments its counter for real.  Nothing is rolled
back when a later step denies, so a request refused at step 3 has still
spent a soft-gate hit at step 2.

Escalation is attached to each quota policy:

  • StrikeEscalation – count the violation; ban once the count inside the
                       escalation window reaches the strike threshold
  • ImmediateBan     – ban straight away, no strikes (daily quotas)

If the store is unreachable the pipeline either lets the request through
(fail open, the default) or reports UNAVAILABLE (fail closed), depending on
the STORE_FAILURE_MODE setting.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from kitchen_gate.bans import BanRegistry, ViolationTracker
from kitchen_gate.exceptions import StoreUnavailableError
from kitchen_gate.rate_limit import LimitResult, Rate, RateLimiter
from kitchen_gate.store import KeyValueStore

logger = logging.getLogger(__name__)


class GateOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    SIGNUP_REQUIRED = "signup_required"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


# ── Policy building blocks ────────────────────────────────────────────────


@dataclass(frozen=True)
class StrikeEscalation:
    strikes: int
    window_seconds: int
    ban_seconds: int


@dataclass(frozen=True)
class ImmediateBan:
    ban_seconds: int


Escalation = StrikeEscalation | ImmediateBan


@dataclass(frozen=True)
class QuotaPolicy:
    """
    One independent ``(key, limit, window)`` dimension.

    Keys are ``<prefix>:<identity><suffix>`` so that, e.g., the per-minute
    and per-day AI quotas never share a counter.
    """

    prefix: str
    rate: Rate
    escalation: Escalation | None = None
    message: str = "Rate limit exceeded"
    suffix: str = ""

    def key(self, identity: str) -> str:
        return f"{self.prefix}:{identity}{self.suffix}"


@dataclass(frozen=True)
class GateProfile:
    """The checks one kind of endpoint runs, in order."""

    name: str
    policies: tuple[QuotaPolicy, ...] = ()
    soft_gate: QuotaPolicy | None = None


# ── Decision ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    limit: LimitResult | None = None
    policy: QuotaPolicy | None = None
    banned: bool = False
    degraded: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome is GateOutcome.ALLOWED

    @property
    def message(self) -> str:
        if self.outcome is GateOutcome.FORBIDDEN:
            return "Forbidden"
        if self.outcome is GateOutcome.SIGNUP_REQUIRED:
            return "signup_required"
        if self.outcome is GateOutcome.UNAVAILABLE:
            return "Service temporarily unavailable"
        if self.outcome is GateOutcome.RATE_LIMITED and self.policy is not None:
            return self.policy.message
        return "ok"


_ALLOWED = GateDecision(GateOutcome.ALLOWED)


@dataclass
class GatePipeline:
    """Runs a GateProfile for an identity against the shared store."""

    store: KeyValueStore
    fail_open: bool = True
    limiter: RateLimiter = field(init=False)
    bans: BanRegistry = field(init=False)
    violations: ViolationTracker = field(init=False)

    def __post_init__(self) -> None:
        self.limiter = RateLimiter(self.store)
        self.bans = BanRegistry(self.store)
        self.violations = ViolationTracker(self.store)

    async def evaluate(
        self,
        identity: str,
        profile: GateProfile,
        *,
        verified: bool = False,
    ) -> GateDecision:
        try:
            return await self._evaluate(identity, profile, verified)
        except StoreUnavailableError as exc:
            if self.fail_open:
                logger.warning(
                    "Store unavailable during %s gate for %s, failing open: %s",
                    profile.name, identity, exc,
                )
                return GateDecision(GateOutcome.ALLOWED, degraded=True)
            logger.error(
                "Store unavailable during %s gate for %s, failing closed: %s",
                profile.name, identity, exc,
            )
            return GateDecision(GateOutcome.UNAVAILABLE, degraded=True)

    async def _evaluate(
        self,
        identity: str,
        profile: GateProfile,
        verified: bool,
    ) -> GateDecision:
        if await self.bans.is_banned(identity):
            return GateDecision(GateOutcome.FORBIDDEN)

        if profile.soft_gate is not None and not verified:
            soft = profile.soft_gate
            result = await self.limiter.hit(soft.key(identity), soft.rate)
            if not result.allowed:
                logger.info("Soft gate reached for %s (%s)", identity, profile.name)
                return GateDecision(GateOutcome.SIGNUP_REQUIRED, limit=result, policy=soft)

        last: LimitResult | None = None
        for policy in profile.policies:
            last = await self.limiter.hit(policy.key(identity), policy.rate)
            if last.allowed:
                continue
            banned = await self._escalate(identity, policy)
            return GateDecision(
                GateOutcome.RATE_LIMITED,
                limit=last,
                policy=policy,
                banned=banned,
            )

        if last is None:
            return _ALLOWED
        return GateDecision(GateOutcome.ALLOWED, limit=last)

    async def _escalate(self, identity: str, policy: QuotaPolicy) -> bool:
        """Apply the policy's escalation; True if the identity is now banned."""
        escalation = policy.escalation
        if isinstance(escalation, ImmediateBan):
            await self.bans.ban(identity, escalation.ban_seconds)
            return True
        if isinstance(escalation, StrikeEscalation):
            strikes = await self.violations.record_violation(
                identity, escalation.window_seconds,
            )
            if strikes >= escalation.strikes:
                await self.bans.ban(identity, escalation.ban_seconds)
                return True
        return False
