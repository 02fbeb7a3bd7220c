"""Step-up gate exceptions.

All gate errors inherit from GateError. Backend failures are converted into
``Failed`` outcomes by :func:`stepup_gate.outcome.attempt`; the exceptions
below are what adapters raise and what callers see when invoking an action
that the current state does not allow.
"""

from __future__ import annotations

# ═══════════════════════════════════════════════════════════════
# BASE GATE ERROR
# ═══════════════════════════════════════════════════════════════


class GateError(Exception):
    """Root exception for the step-up gate."""


# ═══════════════════════════════════════════════════════════════
# BACKEND ERRORS
# ═══════════════════════════════════════════════════════════════


class BackendError(GateError):
    """Raised when a backend call fails at the transport or HTTP level.

    Attributes:
        status_code: HTTP status code, or None when no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ═══════════════════════════════════════════════════════════════
# MFA ERRORS
# ═══════════════════════════════════════════════════════════════


class MfaError(GateError):
    """Base class for MFA-related errors."""


class MfaInvalidError(MfaError):
    """Raised when a TOTP code or backup code is rejected."""


class InvalidCodeFormatError(MfaInvalidError):
    """Raised when a code fails the client-side length/format check.

    This is a fast-fail only; the backend verify call stays authoritative.
    """


class MfaSetupError(MfaError):
    """Raised when MFA setup cannot proceed.

    Examples:
        - Setup requested for a user that already has MFA enabled
        - Verify-and-enable called before a secret was provisioned
    """


# ═══════════════════════════════════════════════════════════════
# POLICY ERRORS
# ═══════════════════════════════════════════════════════════════


class PolicyError(GateError):
    """Base class for policy-acceptance errors."""


class PolicyAcceptanceError(PolicyError):
    """Raised when submitting policy acceptance fails."""


# ═══════════════════════════════════════════════════════════════
# DISABLED ACTIONS
# ═══════════════════════════════════════════════════════════════


class ActionDisabledError(GateError):
    """Raised when an action is invoked while it is contract-disabled.

    UI layers render these actions as disabled; reaching this error means the
    caller bypassed that rendering.
    """


class BackupCodesNotAcknowledgedError(ActionDisabledError):
    """Raised when completing enrollment before the backup codes were saved."""

    def __init__(
        self,
        message: str = "Backup codes must be downloaded before completing setup",
    ) -> None:
        super().__init__(message)


__all__: list[str] = [
    "GateError",
    "BackendError",
    "MfaError",
    "MfaInvalidError",
    "InvalidCodeFormatError",
    "MfaSetupError",
    "PolicyError",
    "PolicyAcceptanceError",
    "ActionDisabledError",
    "BackupCodesNotAcknowledgedError",
]
