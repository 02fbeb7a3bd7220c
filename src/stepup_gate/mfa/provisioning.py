"""Local TOTP provisioning backend.

An in-process implementation of :class:`~stepup_gate.ports.IMfaService`
for development and tests. Works with any RFC 6238 authenticator app
(Google Authenticator, Microsoft Authenticator, Authy, 1Password).

Uses pyotp internally.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pyotp

from ..exceptions import MfaInvalidError, MfaSetupError
from ..ports import IMfaService
from .models import BackupCodeSet, EnrollmentArtifact, MfaStatus

if TYPE_CHECKING:
    from ..identity import Identity


@dataclass
class _TotpEnrollment:
    secret: str
    enabled: bool = False
    backup_codes: set[str] = field(default_factory=set)


class TotpProvisioningService(IMfaService):
    """In-memory TOTP provisioning service.

    ⚠️ WARNING: Secrets and backup codes are stored in plain text in memory.
    Do NOT use in production!

    Example:
        ```python
        service = TotpProvisioningService(issuer="Compliance Dashboard")

        artifact = await service.setup(identity)
        code = pyotp.TOTP(artifact.shared_secret).now()
        backup_codes = await service.verify_and_enable(identity, code)
        ```
    """

    # Characters used in backup codes (exclude ambiguous: 0, O, 1, I)
    ALPHABET = string.ascii_uppercase.replace("O", "").replace(
        "I", ""
    ) + string.digits.replace("0", "").replace("1", "")

    def __init__(
        self,
        *,
        issuer: str = "StepUpGate",
        digits: int = 6,
        interval: int = 30,
        valid_window: int = 1,
        backup_code_count: int = 10,
    ) -> None:
        """Initialize the provisioning service.

        Args:
            issuer: Application name shown in authenticator app.
            digits: Number of digits in code (default 6).
            interval: Time interval in seconds (default 30).
            valid_window: Accept codes ±N intervals for clock drift (default 1).
            backup_code_count: Backup codes issued at enrollment (default 10).
        """
        self.issuer = issuer
        self.digits = digits
        self.interval = interval
        self.valid_window = valid_window
        self.backup_code_count = backup_code_count
        self._enrollments: dict[str, _TotpEnrollment] = {}

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=self.digits,
            interval=self.interval,
            issuer=self.issuer,
        )

    def _generate_backup_code(self) -> str:
        """Generate a single backup code formatted as ``XXXX-XXXX``."""
        raw = "".join(secrets.choice(self.ALPHABET) for _ in range(8))
        return f"{raw[:4]}-{raw[4:]}"

    def _normalize_backup_code(self, code: str) -> str:
        """Strip whitespace, accept with or without dash."""
        code = code.strip().upper()
        if len(code) == 8 and "-" not in code:
            code = f"{code[:4]}-{code[4:]}"
        return code

    async def get_status(self, identity: Identity) -> MfaStatus:
        enrollment = self._enrollments.get(identity.user_id)
        enabled = enrollment is not None and enrollment.enabled
        return MfaStatus(enabled=enabled, verified=enabled)

    async def setup(self, identity: Identity) -> EnrollmentArtifact:
        """Generate a fresh secret for an identity that is not yet enrolled.

        Raises:
            MfaSetupError: If MFA is already enabled for the identity.
        """
        current = self._enrollments.get(identity.user_id)
        if current is not None and current.enabled:
            raise MfaSetupError("MFA is already enabled")

        secret = pyotp.random_base32()
        self._enrollments[identity.user_id] = _TotpEnrollment(secret=secret)
        uri = self._totp(secret).provisioning_uri(
            name=identity.username or identity.user_id,
            issuer_name=self.issuer,
        )
        return EnrollmentArtifact(shared_secret=secret, enrollment_image=uri)

    async def verify_and_enable(self, identity: Identity, code: str) -> BackupCodeSet:
        """Enable MFA after the first valid code and issue backup codes once.

        Raises:
            MfaSetupError: If setup was not started or MFA is already enabled.
            MfaInvalidError: If the code is invalid.
        """
        enrollment = self._enrollments.get(identity.user_id)
        if enrollment is None:
            raise MfaSetupError("MFA setup has not been started")
        if enrollment.enabled:
            raise MfaSetupError("MFA is already enabled")

        if not self._totp(enrollment.secret).verify(
            code, valid_window=self.valid_window
        ):
            raise MfaInvalidError("Invalid TOTP code")

        codes = [self._generate_backup_code() for _ in range(self.backup_code_count)]
        enrollment.enabled = True
        enrollment.backup_codes = set(codes)
        return BackupCodeSet(codes=tuple(codes))

    async def verify(
        self, identity: Identity, code: str, *, is_backup_code: bool = False
    ) -> None:
        """Verify a TOTP code, or consume a single-use backup code.

        Raises:
            MfaSetupError: If MFA is not enabled for the identity.
            MfaInvalidError: If the code is invalid or already used.
        """
        enrollment = self._enrollments.get(identity.user_id)
        if enrollment is None or not enrollment.enabled:
            raise MfaSetupError("MFA is not enabled")

        if is_backup_code:
            normalized = self._normalize_backup_code(code)
            if normalized not in enrollment.backup_codes:
                raise MfaInvalidError("Invalid backup code")
            enrollment.backup_codes.discard(normalized)
            return

        if not self._totp(enrollment.secret).verify(
            code, valid_window=self.valid_window
        ):
            raise MfaInvalidError("Invalid TOTP code")

    def secret_for(self, user_id: str) -> str | None:
        """Provisioned secret for a user. For tests and local tooling."""
        enrollment = self._enrollments.get(user_id)
        return enrollment.secret if enrollment else None

    def remaining_backup_codes(self, user_id: str) -> int:
        enrollment = self._enrollments.get(user_id)
        return len(enrollment.backup_codes) if enrollment else 0


__all__: list[str] = ["TotpProvisioningService"]
