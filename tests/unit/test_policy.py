"""Tests for the policy check, the acceptance page and the in-memory service."""

from __future__ import annotations

import asyncio

import pytest

from stepup_gate import (
    ActionDisabledError,
    GateConfig,
    Identity,
    InMemoryNavigator,
    SessionTrustStore,
)
from stepup_gate.audit import AuditRecorder, AuthEventType, InMemoryAuthAuditStore
from stepup_gate.exceptions import BackendError, PolicyAcceptanceError
from stepup_gate.observability import GateMetrics
from stepup_gate.outcome import CallKind, FailurePolicy
from stepup_gate.policy import (
    InMemoryPolicyAcceptanceService,
    PolicyAcceptanceForm,
    PolicyCheck,
    PolicyDecision,
    PublishedPolicy,
)


@pytest.fixture
def recorder(audit_store: InMemoryAuthAuditStore) -> AuditRecorder:
    return AuditRecorder(audit_store)


@pytest.fixture
def check(
    policy_service,
    trust_store: SessionTrustStore,
    config: GateConfig,
    recorder: AuditRecorder,
    metrics: GateMetrics,
) -> PolicyCheck:
    return PolicyCheck(
        policy_service, trust_store, config=config, audit=recorder, metrics=metrics
    )


@pytest.fixture
def form(
    identity: Identity,
    policy_service,
    trust_store: SessionTrustStore,
    navigator: InMemoryNavigator,
    config: GateConfig,
    recorder: AuditRecorder,
) -> PolicyAcceptanceForm:
    navigator.redirect(config.policy_acceptance_route)
    return PolicyAcceptanceForm(
        identity,
        policy_service,
        trust_store,
        navigator,
        config=config,
        audit=recorder,
    )


class TestPolicyCheck:
    @pytest.mark.asyncio
    async def test_cached_flag_skips_call(
        self,
        check: PolicyCheck,
        trust_store: SessionTrustStore,
        identity: Identity,
        policy_service,
    ) -> None:
        trust_store.mark_policy_check_complete()

        result = await check.evaluate(identity)

        assert result.decision is PolicyDecision.CACHED
        assert result.allows_access
        assert policy_service.count("status") == 0

    @pytest.mark.asyncio
    async def test_super_admin_is_exempt(
        self,
        check: PolicyCheck,
        trust_store: SessionTrustStore,
        super_admin: Identity,
        policy_service,
    ) -> None:
        result = await check.evaluate(super_admin)

        assert result.decision is PolicyDecision.EXEMPT
        assert trust_store.is_policy_check_complete()
        assert policy_service.count("status") == 0

    @pytest.mark.asyncio
    async def test_identity_without_organization_is_exempt(
        self, check: PolicyCheck, policy_service
    ) -> None:
        result = await check.evaluate(Identity(user_id="new_user", role="ADMIN"))

        assert result.decision is PolicyDecision.EXEMPT
        assert policy_service.count("status") == 0

    @pytest.mark.asyncio
    async def test_nothing_outstanding_is_cached(
        self, check: PolicyCheck, trust_store: SessionTrustStore, identity: Identity
    ) -> None:
        result = await check.evaluate(identity)

        assert result.decision is PolicyDecision.SATISFIED
        assert trust_store.is_policy_check_complete()

    @pytest.mark.asyncio
    async def test_outstanding_policies_are_not_cached(
        self,
        check: PolicyCheck,
        trust_store: SessionTrustStore,
        identity: Identity,
        policy_service,
    ) -> None:
        policy_service.needs_acceptance = True

        result = await check.evaluate(identity)

        assert result.decision is PolicyDecision.ACCEPTANCE_REQUIRED
        assert not result.allows_access
        assert not trust_store.is_policy_check_complete()

    @pytest.mark.asyncio
    async def test_failure_fails_open(
        self,
        check: PolicyCheck,
        trust_store: SessionTrustStore,
        identity: Identity,
        policy_service,
        recorder: AuditRecorder,
        audit_store: InMemoryAuthAuditStore,
        registry,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        policy_service.status_error = BackendError("down", status_code=503)

        result = await check.evaluate(identity)
        await recorder.drain()

        assert result.decision is PolicyDecision.FAILED_OPEN
        assert result.allows_access
        assert trust_store.is_policy_check_complete()
        assert "failing open" in caplog.text
        failed_open = AuthEventType.POLICY_CHECK_FAILED_OPEN
        assert len(audit_store.trail(identity.user_id, failed_open)) == 1
        assert (
            registry.get_sample_value(
                "stepup_gate_fail_open_total", {"call": "policy_acceptance_status"}
            )
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_fail_closed_leaves_check_unresolved(
        self,
        policy_service,
        trust_store: SessionTrustStore,
        identity: Identity,
    ) -> None:
        config = GateConfig(
            failure_policies={CallKind.POLICY_STATUS: FailurePolicy.FAIL_CLOSED}
        )
        check = PolicyCheck(policy_service, trust_store, config=config)
        policy_service.status_error = BackendError("down")

        result = await check.evaluate(identity)

        assert result.decision is PolicyDecision.UNRESOLVED
        assert result.reason == "down"
        assert not trust_store.is_policy_check_complete()

    @pytest.mark.asyncio
    async def test_logout_during_check_is_stale(
        self,
        check: PolicyCheck,
        trust_store: SessionTrustStore,
        identity: Identity,
        policy_service,
    ) -> None:
        release = policy_service.hold("status")

        pending = asyncio.create_task(check.evaluate(identity))
        await asyncio.sleep(0)
        trust_store.clear()
        release.set()

        result = await pending
        assert result.decision is PolicyDecision.STALE
        assert not trust_store.is_policy_check_complete()


class TestPolicyAcceptanceForm:
    @pytest.mark.asyncio
    async def test_load_lists_latest_policies(self, form: PolicyAcceptanceForm) -> None:
        assert await form.load() is True

        assert [p.id for p in form.policies] == ["tos-3", "privacy-2"]
        assert form.is_loaded
        assert not form.can_submit

    @pytest.mark.asyncio
    async def test_load_failure_is_surfaced(
        self, form: PolicyAcceptanceForm, policy_service
    ) -> None:
        policy_service.list_error = RuntimeError("boom")

        assert await form.load() is False
        assert form.error == "Failed to load policies"

    @pytest.mark.asyncio
    async def test_every_policy_must_be_accepted(
        self, form: PolicyAcceptanceForm, policy_service
    ) -> None:
        await form.load()
        form.toggle("tos-3")

        assert not form.all_accepted
        with pytest.raises(ActionDisabledError, match="Accept every policy"):
            await form.submit()
        assert policy_service.count("accept") == 0

    @pytest.mark.asyncio
    async def test_toggle_off_and_unknown(self, form: PolicyAcceptanceForm) -> None:
        await form.load()

        assert form.toggle("tos-3") is True
        assert form.toggle("tos-3") is False
        assert form.toggle("tos-3", accepted=True) is True
        with pytest.raises(KeyError):
            form.toggle("cookies-1")

    @pytest.mark.asyncio
    async def test_submit_caches_and_navigates(
        self,
        form: PolicyAcceptanceForm,
        policy_service,
        trust_store: SessionTrustStore,
        navigator: InMemoryNavigator,
        recorder: AuditRecorder,
        audit_store: InMemoryAuthAuditStore,
        identity: Identity,
    ) -> None:
        await form.load()
        form.toggle("tos-3")
        form.toggle("privacy-2")

        assert await form.submit() is True
        await recorder.drain()

        assert policy_service.accepted == [["tos-3", "privacy-2"]]
        assert trust_store.is_policy_check_complete()
        assert navigator.current_route == "/client/dashboard"
        events = audit_store.trail(identity.user_id, AuthEventType.POLICY_ACCEPTED)
        assert events[0].metadata == {"policy_ids": ["tos-3", "privacy-2"]}

    @pytest.mark.asyncio
    async def test_submit_failure_stays_on_page(
        self,
        form: PolicyAcceptanceForm,
        policy_service,
        trust_store: SessionTrustStore,
        navigator: InMemoryNavigator,
    ) -> None:
        policy_service.accept_error = PolicyAcceptanceError("Policy version outdated")
        await form.load()
        form.toggle("tos-3")
        form.toggle("privacy-2")

        assert await form.submit() is False

        assert form.error == "Policy version outdated"
        assert not trust_store.is_policy_check_complete()
        assert navigator.current_route == "/policy-acceptance"
        assert form.can_submit

    @pytest.mark.asyncio
    async def test_empty_policy_list_can_be_submitted(
        self, form: PolicyAcceptanceForm, policy_service
    ) -> None:
        policy_service.policies = []
        await form.load()

        assert form.all_accepted
        assert await form.submit() is True


class TestInMemoryPolicyAcceptanceService:
    @pytest.mark.asyncio
    async def test_acceptance_lifecycle(self, identity: Identity) -> None:
        service = InMemoryPolicyAcceptanceService()

        assert (await service.get_acceptance_status(identity)).needs_acceptance

        ids = [p.id for p in await service.list_latest_policies()]
        await service.accept(identity, ids)

        assert not (await service.get_acceptance_status(identity)).needs_acceptance
        assert service.accepted_by(identity.user_id) == {"tos-v1", "privacy-v1"}

    @pytest.mark.asyncio
    async def test_new_version_requires_acceptance_again(
        self, identity: Identity
    ) -> None:
        service = InMemoryPolicyAcceptanceService()
        await service.accept(identity, ["tos-v1", "privacy-v1"])

        service.publish(
            PublishedPolicy(id="tos-v2", type="TERMS_OF_SERVICE", version=2)
        )

        assert (await service.get_acceptance_status(identity)).needs_acceptance
        assert len(await service.list_latest_policies()) == 2

    @pytest.mark.asyncio
    async def test_unknown_policy_is_rejected(self, identity: Identity) -> None:
        service = InMemoryPolicyAcceptanceService([])

        with pytest.raises(PolicyAcceptanceError, match="Unknown policy: x"):
            await service.accept(identity, ["x"])
        assert not (await service.get_acceptance_status(identity)).needs_acceptance
