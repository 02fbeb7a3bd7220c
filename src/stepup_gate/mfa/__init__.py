"""Multi-factor authentication: enrollment wizard, step-up challenge and
the local TOTP provisioning backend."""

from __future__ import annotations

from .challenge import StepUpChallenge
from .codes import format_error, is_well_formed, normalize_input, validate_code
from .enrollment import BackupCodeDownload, EnrollmentStage, EnrollmentWizard
from .models import (
    BACKUP_CODE_LENGTH,
    TOTP_CODE_LENGTH,
    BackupCodeSet,
    EnrollmentArtifact,
    MfaStatus,
    VerificationMode,
)
from .provisioning import TotpProvisioningService

__all__: list[str] = [
    # Models
    "MfaStatus",
    "EnrollmentArtifact",
    "BackupCodeSet",
    "VerificationMode",
    "TOTP_CODE_LENGTH",
    "BACKUP_CODE_LENGTH",
    # Input rules
    "normalize_input",
    "format_error",
    "is_well_formed",
    "validate_code",
    # Flows
    "StepUpChallenge",
    "EnrollmentWizard",
    "EnrollmentStage",
    "BackupCodeDownload",
    # Local backend
    "TotpProvisioningService",
]
