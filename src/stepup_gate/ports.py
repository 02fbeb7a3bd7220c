"""Gate ports (protocols).

These protocols define the external collaborators the gate talks to. All
ports use @runtime_checkable for isinstance checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit.events import AuthAuditEvent
    from .identity import Identity
    from .mfa.models import BackupCodeSet, EnrollmentArtifact, MfaStatus
    from .policy.models import PolicyAcceptanceStatus, PublishedPolicy


# ═══════════════════════════════════════════════════════════════
# TOTP PROVISIONING SERVICE PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IMfaService(Protocol):
    """Protocol for the TOTP provisioning and verification backend.

    Implementations:
        - RestMfaService (HTTP backend)
        - TotpProvisioningService (local, pyotp-backed)
    """

    async def get_status(self, identity: Identity) -> MfaStatus:
        """Fetch the MFA status for an identity.

        Args:
            identity: The signed-in identity.

        Returns:
            Current ``MfaStatus``.
        """
        ...

    async def setup(self, identity: Identity) -> EnrollmentArtifact:
        """Generate a new shared secret and enrollment image.

        Args:
            identity: The identity enrolling.

        Returns:
            EnrollmentArtifact for this wizard session.

        Raises:
            MfaSetupError: Setup is not possible (e.g. already enabled).
        """
        ...

    async def verify_and_enable(self, identity: Identity, code: str) -> BackupCodeSet:
        """Confirm enrollment with a 6-digit code and enable MFA.

        Args:
            identity: The identity enrolling.
            code: 6-digit TOTP code from the authenticator app.

        Returns:
            The backup codes, issued exactly once.

        Raises:
            MfaInvalidError: The code was rejected.
        """
        ...

    async def verify(
        self, identity: Identity, code: str, *, is_backup_code: bool = False
    ) -> None:
        """Verify a step-up code.

        Args:
            identity: The signed-in identity.
            code: 6-digit TOTP code or 9-character backup code.
            is_backup_code: Whether ``code`` is a backup code.

        Raises:
            MfaInvalidError: The code was rejected.
        """
        ...


# ═══════════════════════════════════════════════════════════════
# POLICY ACCEPTANCE SERVICE PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IPolicyAcceptanceService(Protocol):
    """Protocol for the legal/compliance policy acceptance backend."""

    async def get_acceptance_status(
        self, identity: Identity
    ) -> PolicyAcceptanceStatus:
        """Report whether the identity must accept outstanding policies."""
        ...

    async def list_latest_policies(self) -> list[PublishedPolicy]:
        """Return the latest published version of every policy."""
        ...

    async def accept(self, identity: Identity, policy_ids: list[str]) -> None:
        """Record acceptance of the given policy versions.

        Raises:
            PolicyAcceptanceError: Acceptance was not recorded.
        """
        ...


# ═══════════════════════════════════════════════════════════════
# NAVIGATION PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class INavigator(Protocol):
    """Protocol for the host application's router."""

    @property
    def current_route(self) -> str:
        """Path of the route currently displayed."""
        ...

    def redirect(self, route: str) -> None:
        """Navigate to ``route``."""
        ...


class InMemoryNavigator(INavigator):
    """Navigator that records redirects. For development and testing."""

    def __init__(self, current_route: str = "/") -> None:
        self._current_route = current_route
        self.history: list[str] = []

    @property
    def current_route(self) -> str:
        return self._current_route

    def redirect(self, route: str) -> None:
        self.history.append(route)
        self._current_route = route


# ═══════════════════════════════════════════════════════════════
# AUDIT PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IAuthAuditStore(Protocol):
    """Protocol for storing gate audit events."""

    async def record(self, event: AuthAuditEvent) -> None:
        """Record an audit event."""
        ...


__all__: list[str] = [
    "IMfaService",
    "IPolicyAcceptanceService",
    "INavigator",
    "InMemoryNavigator",
    "IAuthAuditStore",
]
