"""Policy acceptance: wire models, the gate's policy check, the acceptance
page and an in-memory backend."""

from __future__ import annotations

from .check import (
    PolicyAcceptanceForm,
    PolicyCheck,
    PolicyCheckResult,
    PolicyDecision,
)
from .memory import InMemoryPolicyAcceptanceService, default_policies
from .models import PolicyAcceptanceStatus, PolicyType, PublishedPolicy

__all__: list[str] = [
    "PolicyType",
    "PolicyAcceptanceStatus",
    "PublishedPolicy",
    "PolicyDecision",
    "PolicyCheckResult",
    "PolicyCheck",
    "PolicyAcceptanceForm",
    "InMemoryPolicyAcceptanceService",
    "default_policies",
]
