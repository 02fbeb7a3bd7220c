"""Authorization gate: state machine and orchestrator."""

from __future__ import annotations

from .orchestrator import AuthorizationGate, GateListener
from .state import (
    Allowed,
    AwaitingPolicy,
    GatePhase,
    GateState,
    GateView,
    Loading,
    NeedsEnrollment,
    NeedsVerification,
    reduce,
    render,
)

__all__: list[str] = [
    "AuthorizationGate",
    "GateListener",
    "GatePhase",
    "GateView",
    "GateState",
    "Loading",
    "NeedsEnrollment",
    "NeedsVerification",
    "AwaitingPolicy",
    "Allowed",
    "reduce",
    "render",
]
