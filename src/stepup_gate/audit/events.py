"""Audit events for the step-up gate.

This module provides standardized audit events for tracking enrollment,
step-up verification, policy acceptance and fail-open decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AuthEventType(Enum):
    """Types of gate audit events.

    Event naming follows the pattern: `auth.<resource>.<action>`
    """

    # MFA events
    MFA_STATUS_FAILED_OPEN = "auth.mfa.status_failed_open"
    MFA_SETUP_STARTED = "auth.mfa.setup_started"
    MFA_ENABLED = "auth.mfa.enabled"
    MFA_ENABLE_FAILED = "auth.mfa.enable_failed"
    MFA_VERIFIED = "auth.mfa.verified"
    MFA_FAILED = "auth.mfa.failed"

    # Policy events
    POLICY_REDIRECTED = "auth.policy.redirected"
    POLICY_ACCEPTED = "auth.policy.accepted"
    POLICY_CHECK_FAILED_OPEN = "auth.policy.check_failed_open"

    # Access / session events
    ACCESS_GRANTED = "auth.access.granted"
    SESSION_CLEARED = "auth.session.cleared"


@dataclass(frozen=True)
class AuthAuditEvent:
    """Gate audit event.

    Attributes:
        event_type: The type of event.
        principal_id: The user ID associated with the event.
        timestamp: When the event occurred (UTC).
        success: Whether the operation was successful.
        error_code: Error code if the operation failed.
        error_message: Human-readable error message if failed.
        metadata: Additional event-specific data.
    """

    event_type: AuthEventType
    principal_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error_code:
            object.__setattr__(self, "error_code", "UNKNOWN_ERROR")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-serializable dictionary."""
        return {
            "event_type": self.event_type.value,
            "principal_id": self.principal_id,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "metadata": self.metadata,
        }


# ═══════════════════════════════════════════════════════════════
# EVENT FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════


def status_failed_open_event(principal_id: str, reason: str) -> AuthAuditEvent:
    """Create an event for an MFA status fetch that failed open."""
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_STATUS_FAILED_OPEN,
        principal_id=principal_id,
        success=False,
        error_code="STATUS_UNAVAILABLE",
        error_message=reason,
    )


def mfa_setup_started_event(principal_id: str) -> AuthAuditEvent:
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_SETUP_STARTED,
        principal_id=principal_id,
    )


def mfa_enabled_event(principal_id: str, backup_code_count: int) -> AuthAuditEvent:
    """Create an event for a completed verify-and-enable call."""
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_ENABLED,
        principal_id=principal_id,
        metadata={"backup_code_count": backup_code_count},
    )


def mfa_enable_failed_event(principal_id: str, reason: str) -> AuthAuditEvent:
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_ENABLE_FAILED,
        principal_id=principal_id,
        success=False,
        error_code="ENROLLMENT_CODE_REJECTED",
        error_message=reason,
    )


def mfa_verified_event(principal_id: str, *, method: str = "totp") -> AuthAuditEvent:
    """Create an MFA verified event."""
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_VERIFIED,
        principal_id=principal_id,
        metadata={"method": method},
    )


def mfa_failed_event(
    principal_id: str, reason: str, *, method: str = "totp"
) -> AuthAuditEvent:
    """Create an MFA failed event."""
    return AuthAuditEvent(
        event_type=AuthEventType.MFA_FAILED,
        principal_id=principal_id,
        success=False,
        error_code="MFA_CODE_REJECTED",
        error_message=reason,
        metadata={"method": method},
    )


def policy_redirected_event(principal_id: str, route: str) -> AuthAuditEvent:
    return AuthAuditEvent(
        event_type=AuthEventType.POLICY_REDIRECTED,
        principal_id=principal_id,
        metadata={"route": route},
    )


def policy_accepted_event(principal_id: str, policy_ids: list[str]) -> AuthAuditEvent:
    """Create a policy accepted event."""
    return AuthAuditEvent(
        event_type=AuthEventType.POLICY_ACCEPTED,
        principal_id=principal_id,
        metadata={"policy_ids": list(policy_ids)},
    )


def policy_check_failed_open_event(principal_id: str, reason: str) -> AuthAuditEvent:
    return AuthAuditEvent(
        event_type=AuthEventType.POLICY_CHECK_FAILED_OPEN,
        principal_id=principal_id,
        success=False,
        error_code="POLICY_STATUS_UNAVAILABLE",
        error_message=reason,
    )


def access_granted_event(principal_id: str) -> AuthAuditEvent:
    return AuthAuditEvent(
        event_type=AuthEventType.ACCESS_GRANTED,
        principal_id=principal_id,
    )


def session_cleared_event(
    principal_id: str | None, *, reason: str = "logout"
) -> AuthAuditEvent:
    """Create an event for tab trust state being discarded."""
    return AuthAuditEvent(
        event_type=AuthEventType.SESSION_CLEARED,
        principal_id=principal_id,
        metadata={"reason": reason},
    )


__all__: list[str] = [
    "AuthEventType",
    "AuthAuditEvent",
    "status_failed_open_event",
    "mfa_setup_started_event",
    "mfa_enabled_event",
    "mfa_enable_failed_event",
    "mfa_verified_event",
    "mfa_failed_event",
    "policy_redirected_event",
    "policy_accepted_event",
    "policy_check_failed_open_event",
    "access_granted_event",
    "session_cleared_event",
]
