"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from stepup_gate import (
    AuthorizationGate,
    GateConfig,
    Identity,
    InMemoryNavigator,
    InMemoryTabStorage,
    SessionTrustStore,
)
from stepup_gate.audit import InMemoryAuthAuditStore
from stepup_gate.exceptions import MfaInvalidError
from stepup_gate.mfa.models import BackupCodeSet, EnrollmentArtifact, MfaStatus
from stepup_gate.observability import GateMetrics
from stepup_gate.policy.models import PolicyAcceptanceStatus, PublishedPolicy
from stepup_gate.ports import IMfaService, IPolicyAcceptanceService

VALID_TOTP = "123456"
TEST_SECRET = "JBSWY3DPEHPK3PXP"
TEST_BACKUP_CODES = (
    "ABCD-EFGH",
    "JKLM-NPQR",
    "STUV-WXYZ",
    "2345-6789",
)


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class _Scripted:
    """Records calls and can hold any call until released."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._holds: dict[str, asyncio.Event] = {}

    def hold(self, name: str) -> asyncio.Event:
        """Make the next calls to ``name`` wait until the event is set."""
        event = asyncio.Event()
        self._holds[name] = event
        return event

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        event = self._holds.get(name)
        if event is not None:
            await event.wait()

    def count(self, name: str) -> int:
        return self.calls.count(name)


class FakeMfaService(_Scripted, IMfaService):
    """Scripted MFA backend. ``123456`` is the only valid TOTP code."""

    def __init__(self, status: MfaStatus | None = None) -> None:
        super().__init__()
        self.status = status or MfaStatus(enabled=True, verified=True)
        self.status_error: Exception | None = None
        self.setup_error: Exception | None = None
        self.unused_backup_codes = set(TEST_BACKUP_CODES)
        self.verified_with: list[tuple[str, bool]] = []

    async def get_status(self, identity: Identity) -> MfaStatus:
        await self._enter("status")
        if self.status_error is not None:
            raise self.status_error
        return self.status

    async def setup(self, identity: Identity) -> EnrollmentArtifact:
        await self._enter("setup")
        if self.setup_error is not None:
            raise self.setup_error
        return EnrollmentArtifact(
            shared_secret=TEST_SECRET,
            enrollment_image=f"otpauth://totp/Test:{identity.user_id}",
        )

    async def verify_and_enable(self, identity: Identity, code: str) -> BackupCodeSet:
        await self._enter("enable")
        if code != VALID_TOTP:
            raise MfaInvalidError("Invalid TOTP code")
        self.status = MfaStatus(enabled=True, verified=True)
        return BackupCodeSet(codes=TEST_BACKUP_CODES)

    async def verify(
        self, identity: Identity, code: str, *, is_backup_code: bool = False
    ) -> None:
        await self._enter("verify")
        self.verified_with.append((code, is_backup_code))
        if is_backup_code:
            if code not in self.unused_backup_codes:
                raise MfaInvalidError("Invalid backup code")
            self.unused_backup_codes.discard(code)
            return
        if code != VALID_TOTP:
            raise MfaInvalidError("Invalid code")


class FakePolicyService(_Scripted, IPolicyAcceptanceService):
    """Scripted policy backend."""

    def __init__(self, *, needs_acceptance: bool = False) -> None:
        super().__init__()
        self.needs_acceptance = needs_acceptance
        self.status_error: Exception | None = None
        self.list_error: Exception | None = None
        self.accept_error: Exception | None = None
        self.policies = [
            PublishedPolicy(id="tos-3", type="TERMS_OF_SERVICE", version=3),
            PublishedPolicy(id="privacy-2", type="PRIVACY_POLICY", version=2),
        ]
        self.accepted: list[list[str]] = []

    async def get_acceptance_status(
        self, identity: Identity
    ) -> PolicyAcceptanceStatus:
        await self._enter("status")
        if self.status_error is not None:
            raise self.status_error
        return PolicyAcceptanceStatus(needs_acceptance=self.needs_acceptance)

    async def list_latest_policies(self) -> list[PublishedPolicy]:
        await self._enter("list")
        if self.list_error is not None:
            raise self.list_error
        return list(self.policies)

    async def accept(self, identity: Identity, policy_ids: list[str]) -> None:
        await self._enter("accept")
        if self.accept_error is not None:
            raise self.accept_error
        self.accepted.append(list(policy_ids))
        self.needs_acceptance = False


@pytest.fixture
def identity() -> Identity:
    """A team member with an organization (subject to the policy check)."""
    return Identity(
        user_id="user_123",
        username="member@example.com",
        role="MEMBER",
        organization_id="cmp_1",
    )


@pytest.fixture
def other_identity() -> Identity:
    return Identity(user_id="user_456", role="MEMBER", organization_id="cmp_1")


@pytest.fixture
def super_admin() -> Identity:
    return Identity(user_id="admin_1", role="SUPER_ADMIN", organization_id="cmp_1")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryTabStorage:
    return InMemoryTabStorage()


@pytest.fixture
def config() -> GateConfig:
    return GateConfig()


@pytest.fixture
def trust_store(
    storage: InMemoryTabStorage, clock: FakeClock, config: GateConfig
) -> SessionTrustStore:
    return SessionTrustStore.from_config(storage, config, clock=clock)


@pytest.fixture
def navigator() -> InMemoryNavigator:
    return InMemoryNavigator("/client/dashboard")


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> GateMetrics:
    return GateMetrics(registry=registry)


@pytest.fixture
def audit_store() -> InMemoryAuthAuditStore:
    return InMemoryAuthAuditStore()


@pytest.fixture
def mfa_service() -> FakeMfaService:
    return FakeMfaService()


@pytest.fixture
def policy_service() -> FakePolicyService:
    return FakePolicyService()


@pytest.fixture
def gate(
    mfa_service: FakeMfaService,
    policy_service: FakePolicyService,
    trust_store: SessionTrustStore,
    navigator: InMemoryNavigator,
    config: GateConfig,
    audit_store: InMemoryAuthAuditStore,
    metrics: GateMetrics,
) -> AuthorizationGate:
    return AuthorizationGate(
        mfa_service,
        policy_service,
        trust_store,
        navigator,
        config=config,
        audit_store=audit_store,
        metrics=metrics,
    )
