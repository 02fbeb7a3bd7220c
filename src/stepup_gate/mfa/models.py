"""MFA data exchanged with the provisioning service.

Field aliases follow the backend's camelCase JSON, so responses can be fed
to ``model_validate`` directly.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

TOTP_CODE_LENGTH = 6
BACKUP_CODE_LENGTH = 9


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class MfaStatus(_WireModel):
    """MFA status for an identity.

    ``enabled=True, verified=False`` is an incomplete enrollment and is
    handled exactly like ``enabled=False``.
    """

    enabled: bool = False
    verified: bool = False

    @property
    def requires_enrollment(self) -> bool:
        return not (self.enabled and self.verified)

    @classmethod
    def unknown(cls) -> MfaStatus:
        """Status assumed when the status service cannot be reached."""
        return cls(enabled=False, verified=False)


class EnrollmentArtifact(_WireModel):
    """Shared secret and scannable enrollment image for one wizard session.

    Attributes:
        shared_secret: Base32 TOTP secret.
        enrollment_image: Opaque scannable payload (data URL or otpauth URI).
    """

    shared_secret: str = Field(alias="secret")
    enrollment_image: str = Field(alias="qrCode")

    @property
    def manual_key(self) -> str:
        """Secret grouped in blocks of four for manual entry."""
        secret = self.shared_secret.rstrip("=")
        return " ".join(secret[i : i + 4] for i in range(0, len(secret), 4))


class BackupCodeSet(_WireModel):
    """Single-use recovery codes issued once, at enrollment completion."""

    codes: tuple[str, ...] = Field(alias="backupCodes")

    def __len__(self) -> int:
        return len(self.codes)

    def render_download(self, title: str = "Backup Codes") -> str:
        """Text content of the downloadable backup-code file."""
        body = "\n".join(self.codes)
        return (
            f"{title}\n\n"
            "Save these codes in a secure location.\n"
            "Each code can only be used once.\n\n"
            f"{body}"
        )

    @staticmethod
    def download_filename(issued_on: date, prefix: str = "backup-codes") -> str:
        return f"{prefix}-{issued_on.isoformat()}.txt"


class VerificationMode(str, Enum):
    """Input mode of the step-up challenge."""

    TOTP = "totp"
    BACKUP_CODE = "backup_code"

    @property
    def code_length(self) -> int:
        return TOTP_CODE_LENGTH if self is VerificationMode.TOTP else BACKUP_CODE_LENGTH

    @property
    def is_backup_code(self) -> bool:
        return self is VerificationMode.BACKUP_CODE

    def toggled(self) -> VerificationMode:
        if self is VerificationMode.TOTP:
            return VerificationMode.BACKUP_CODE
        return VerificationMode.TOTP


__all__: list[str] = [
    "TOTP_CODE_LENGTH",
    "BACKUP_CODE_LENGTH",
    "MfaStatus",
    "EnrollmentArtifact",
    "BackupCodeSet",
    "VerificationMode",
]
