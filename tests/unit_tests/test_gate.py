"""Tests for the gate pipeline: ordering, escalation and failure policy."""

import asyncio

import httpx
import pytest

from kitchen_gate.gate import (
    GateOutcome,
    GatePipeline,
    GateProfile,
    ImmediateBan,
    QuotaPolicy,
    StrikeEscalation,
)
from kitchen_gate.policies import AI_ASSISTANT, BAN_ONLY, PAGE_VIEWS
from kitchen_gate.rate_limit import Rate
from kitchen_gate.store import UpstashStore
from tests.mocks.services import UnavailableStore

IDENTITY = "203.0.113.7"

STRIKES = StrikeEscalation(strikes=3, window_seconds=600, ban_seconds=3600)


def _profile(*policies: QuotaPolicy, soft_gate: QuotaPolicy | None = None) -> GateProfile:
    return GateProfile(name="test", policies=policies, soft_gate=soft_gate)


def _minute(limit: int, escalation=STRIKES) -> QuotaPolicy:
    return QuotaPolicy(prefix="t:pm", rate=Rate(limit, 60), escalation=escalation)


def _daily(limit: int) -> QuotaPolicy:
    return QuotaPolicy(
        prefix="t:pd",
        rate=Rate(limit, 86400),
        escalation=ImmediateBan(ban_seconds=86400),
        message="Daily quota reached",
    )


async def _run(pipeline, profile, n, **kwargs):
    return [await pipeline.evaluate(IDENTITY, profile, **kwargs) for _ in range(n)]


# ── Ban precedence ─────────────────────────────────────────────────────────


class TestBanPrecedence:
    async def test_banned_identity_is_forbidden(self, pipeline):
        await pipeline.bans.ban(IDENTITY, 3600)
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT)
        assert decision.outcome is GateOutcome.FORBIDDEN
        assert decision.message == "Forbidden"

    async def test_ban_skips_every_other_check(self, pipeline, store):
        await pipeline.bans.ban(IDENTITY, 3600)
        await pipeline.evaluate(IDENTITY, AI_ASSISTANT)
        assert await store.read(f"gate:msgs:{IDENTITY}") is None
        assert await store.read(f"ai:pm:{IDENTITY}") is None

    async def test_ban_only_profile(self, pipeline):
        assert (await pipeline.evaluate(IDENTITY, BAN_ONLY)).allowed
        await pipeline.bans.ban(IDENTITY, 60)
        assert (await pipeline.evaluate(IDENTITY, BAN_ONLY)).outcome is GateOutcome.FORBIDDEN

    async def test_other_identities_unaffected(self, pipeline):
        await pipeline.bans.ban(IDENTITY, 3600)
        assert (await pipeline.evaluate("198.51.100.1", BAN_ONLY)).allowed


# ── Quotas and escalation ─────────────────────────────────────────────────


class TestQuotas:
    async def test_allowed_decision_carries_last_limit(self, pipeline):
        decision = await pipeline.evaluate(IDENTITY, _profile(_minute(5), _daily(50)))
        assert decision.allowed
        assert decision.limit.limit == 50
        assert decision.limit.remaining == 49

    async def test_first_denying_policy_wins(self, pipeline, store):
        profile = _profile(_minute(1), _daily(50))
        await pipeline.evaluate(IDENTITY, profile)
        decision = await pipeline.evaluate(IDENTITY, profile)
        assert decision.outcome is GateOutcome.RATE_LIMITED
        assert decision.policy.prefix == "t:pm"
        assert decision.limit.remaining == 0
        # the daily policy never ran for the denied request
        assert await store.read(f"t:pd:{IDENTITY}") == "1"

    async def test_any_policy_denies(self, pipeline):
        profile = _profile(_minute(100), _daily(2))
        await _run(pipeline, profile, 2)
        decision = await pipeline.evaluate(IDENTITY, profile)
        assert decision.outcome is GateOutcome.RATE_LIMITED
        assert decision.message == "Daily quota reached"


class TestEscalation:
    async def test_strikes_below_threshold_do_not_ban(self, pipeline):
        profile = _profile(_minute(1))
        await pipeline.evaluate(IDENTITY, profile)
        decisions = await _run(pipeline, profile, 2)
        assert all(d.outcome is GateOutcome.RATE_LIMITED for d in decisions)
        assert not any(d.banned for d in decisions)
        assert await pipeline.bans.is_banned(IDENTITY) is False

    async def test_third_strike_bans(self, pipeline, clock):
        profile = _profile(_minute(1))
        await pipeline.evaluate(IDENTITY, profile)
        decisions = await _run(pipeline, profile, 3)
        assert decisions[-1].banned is True
        assert await pipeline.bans.is_banned(IDENTITY) is True

        clock.advance(3599)
        assert await pipeline.bans.is_banned(IDENTITY) is True
        clock.advance(1)
        assert await pipeline.bans.is_banned(IDENTITY) is False

    async def test_spaced_violations_do_not_accumulate(self, pipeline, clock):
        profile = _profile(_minute(1))
        for _ in range(3):
            await _run(pipeline, profile, 2)  # one allowed, one violation
            clock.advance(601)
        assert await pipeline.bans.is_banned(IDENTITY) is False
        assert (await pipeline.evaluate(IDENTITY, profile)).allowed

    async def test_policy_without_escalation_never_bans(self, pipeline, store):
        profile = _profile(_minute(1, escalation=None))
        decisions = await _run(pipeline, profile, 10)
        assert decisions[-1].outcome is GateOutcome.RATE_LIMITED
        assert await pipeline.bans.is_banned(IDENTITY) is False
        assert await store.read(f"viol:{IDENTITY}") is None


class TestDailyQuotaSeverity:
    async def test_daily_breach_bans_immediately(self, pipeline, store):
        profile = _profile(_minute(100), _daily(3))
        await _run(pipeline, profile, 3)
        decision = await pipeline.evaluate(IDENTITY, profile)
        assert decision.outcome is GateOutcome.RATE_LIMITED
        assert decision.banned is True
        assert await pipeline.bans.is_banned(IDENTITY) is True
        # no strikes needed or recorded
        assert await store.read(f"viol:{IDENTITY}") is None

    async def test_daily_ban_lasts_a_day(self, pipeline, clock):
        profile = _profile(_daily(1))
        await _run(pipeline, profile, 2)
        clock.advance(86399)
        assert (await pipeline.evaluate(IDENTITY, profile)).outcome is GateOutcome.FORBIDDEN
        clock.advance(1)
        assert await pipeline.bans.is_banned(IDENTITY) is False


# ── Soft gate ──────────────────────────────────────────────────────────────


class TestSoftGate:
    async def test_unverified_hits_signup_gate_after_seven(self, pipeline):
        decisions = await _run(pipeline, AI_ASSISTANT, 7)
        assert all(d.allowed for d in decisions)
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT)
        assert decision.outcome is GateOutcome.SIGNUP_REQUIRED
        assert decision.message == "signup_required"

    async def test_signup_gate_is_not_a_violation(self, pipeline, store):
        await _run(pipeline, AI_ASSISTANT, 12)
        assert await store.read(f"viol:{IDENTITY}") is None
        assert await pipeline.bans.is_banned(IDENTITY) is False

    async def test_verified_never_sees_signup_gate(self, pipeline, clock):
        for _ in range(3):
            decisions = await _run(pipeline, AI_ASSISTANT, 8, verified=True)
            assert all(d.allowed for d in decisions)
            clock.advance(60)

    async def test_verification_lifts_an_exhausted_soft_gate(self, pipeline):
        await _run(pipeline, AI_ASSISTANT, 8)
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT, verified=True)
        assert decision.allowed

    async def test_verified_does_not_touch_soft_gate_counter(self, pipeline, store):
        await pipeline.evaluate(IDENTITY, AI_ASSISTANT, verified=True)
        assert await store.read(f"gate:msgs:{IDENTITY}") is None

    async def test_soft_gate_hit_is_spent_even_when_quota_denies(self, pipeline, store):
        profile = _profile(
            _minute(1),
            soft_gate=QuotaPolicy(prefix="t:gate", rate=Rate(5, 86400)),
        )
        await pipeline.evaluate(IDENTITY, profile)
        decision = await pipeline.evaluate(IDENTITY, profile)
        assert decision.outcome is GateOutcome.RATE_LIMITED
        assert await store.read(f"t:gate:{IDENTITY}") == "2"


# ── The documented scenario ────────────────────────────────────────────────


class TestBurstScenario:
    async def test_ten_per_minute_then_three_strikes_then_forbidden(self, pipeline, clock):
        decisions = await _run(pipeline, AI_ASSISTANT, 10, verified=True)
        assert all(d.allowed for d in decisions)
        assert decisions[-1].limit is not None

        eleventh = await pipeline.evaluate(IDENTITY, AI_ASSISTANT, verified=True)
        assert eleventh.outcome is GateOutcome.RATE_LIMITED
        assert eleventh.limit.limit == 10
        assert eleventh.limit.remaining == 0
        assert eleventh.banned is False

        more = await _run(pipeline, AI_ASSISTANT, 2, verified=True)
        assert more[-1].banned is True

        clock.advance(61)  # the minute window has reset, the ban has not
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT, verified=True)
        assert decision.outcome is GateOutcome.FORBIDDEN


class TestConcurrency:
    async def test_concurrent_requests_admit_exactly_the_limit(self, pipeline):
        profile = _profile(_minute(10, escalation=None))
        decisions = await asyncio.gather(
            *(pipeline.evaluate(IDENTITY, profile) for _ in range(25)),
        )
        assert sum(d.allowed for d in decisions) == 10
        assert sorted(d.limit.current for d in decisions) == list(range(1, 26))


class TestPageViews:
    async def test_page_view_key_carries_window(self, pipeline, store):
        await pipeline.evaluate(IDENTITY, PAGE_VIEWS)
        assert await store.read(f"pv:{IDENTITY}:300s") == "1"


# ── Store failures ─────────────────────────────────────────────────────────


class TestStoreFailure:
    async def test_fail_open_allows(self):
        pipeline = GatePipeline(UnavailableStore(), fail_open=True)
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT)
        assert decision.allowed
        assert decision.degraded is True

    async def test_fail_closed_reports_unavailable(self):
        pipeline = GatePipeline(UnavailableStore(), fail_open=False)
        decision = await pipeline.evaluate(IDENTITY, AI_ASSISTANT)
        assert decision.outcome is GateOutcome.UNAVAILABLE
        assert decision.allowed is False

    @pytest.mark.parametrize("fail_open", [True, False])
    async def test_never_raises(self, fail_open):
        pipeline = GatePipeline(UnavailableStore(), fail_open=fail_open)
        await pipeline.evaluate(IDENTITY, PAGE_VIEWS)

    async def test_malformed_counter_reply_fails_open(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200, json=[{"result": None}] if request.url.path == "/multi-exec" else {"result": None},
            ),
        )
        store = UpstashStore("https://example.upstash.io", "t", transport=transport)
        try:
            decision = await GatePipeline(store).evaluate(IDENTITY, PAGE_VIEWS)
        finally:
            await store.close()
        assert decision.allowed
        assert decision.degraded is True
