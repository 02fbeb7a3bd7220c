"""Audit module for gate events.

This module provides audit event types, the recorder used by the gate, and
an in-memory store for tracking enrollment, verification and policy
activity.
"""

from __future__ import annotations

from .events import (
    AuthAuditEvent,
    AuthEventType,
    access_granted_event,
    mfa_enable_failed_event,
    mfa_enabled_event,
    mfa_failed_event,
    mfa_setup_started_event,
    mfa_verified_event,
    policy_accepted_event,
    policy_check_failed_open_event,
    policy_redirected_event,
    session_cleared_event,
    status_failed_open_event,
)
from .memory import InMemoryAuthAuditStore
from .recorder import AuditRecorder

__all__: list[str] = [
    # Event types and classes
    "AuthEventType",
    "AuthAuditEvent",
    # Event factory functions
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
    # Recording and storage
    "AuditRecorder",
    "InMemoryAuthAuditStore",
]
