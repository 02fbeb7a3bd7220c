"""Outcome of a backend call and the failure policy table.

Every backend interaction of the gate goes through :func:`attempt`, which
turns the call into ``Ok(value)`` or ``Failed(kind, reason)``. What happens
next on failure is decided in exactly one place, :data:`DEFAULT_FAILURE_POLICIES`:

=====================  ================  ==========================================
Call                   Policy            Effect
=====================  ================  ==========================================
``MFA_STATUS``         ``FAIL_OPEN``     treated as ``{enabled: False}`` (enroll)
``POLICY_STATUS``      ``FAIL_OPEN``     policy check marked complete
``MFA_SETUP``          ``SURFACE``       error shown, wizard stays at stage 1
``MFA_ENABLE``         ``SURFACE``       error shown, wizard stays at stage 2
``MFA_VERIFY``         ``SURFACE``       error shown, input cleared
``POLICY_LIST``        ``SURFACE``       error shown on the acceptance page
``POLICY_ACCEPT``      ``SURFACE``       error shown on the acceptance page
=====================  ================  ==========================================

Failing open on the two status calls is a risk-accepted availability choice:
a status-service outage must not lock every user out. Deployments that want
the opposite override the table through ``GateConfig.failure_policies``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Generic, TypeVar, Union

from .exceptions import GateError

if TYPE_CHECKING:
    from .observability import GateMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallKind(str, Enum):
    """Backend operations consumed by the gate."""

    MFA_STATUS = "mfa_status"
    MFA_SETUP = "mfa_setup"
    MFA_ENABLE = "mfa_verify_and_enable"
    MFA_VERIFY = "mfa_verify"
    POLICY_STATUS = "policy_acceptance_status"
    POLICY_LIST = "policy_list"
    POLICY_ACCEPT = "policy_accept"


class FailurePolicy(str, Enum):
    """What the gate does when a call fails."""

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"
    SURFACE = "surface"


DEFAULT_FAILURE_POLICIES: Mapping[CallKind, FailurePolicy] = MappingProxyType(
    {
        CallKind.MFA_STATUS: FailurePolicy.FAIL_OPEN,
        CallKind.POLICY_STATUS: FailurePolicy.FAIL_OPEN,
        CallKind.MFA_SETUP: FailurePolicy.SURFACE,
        CallKind.MFA_ENABLE: FailurePolicy.SURFACE,
        CallKind.MFA_VERIFY: FailurePolicy.SURFACE,
        CallKind.POLICY_LIST: FailurePolicy.SURFACE,
        CallKind.POLICY_ACCEPT: FailurePolicy.SURFACE,
    }
)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful call carrying its value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """Failed call.

    Attributes:
        kind: Which backend operation failed.
        reason: Human-readable reason, safe to show to the user.
        error: The original exception.
    """

    kind: CallKind
    reason: str
    error: Exception | None = None

    @property
    def is_ok(self) -> bool:
        return False


Outcome = Union[Ok[T], Failed]

_DEFAULT_REASONS: Mapping[CallKind, str] = MappingProxyType(
    {
        CallKind.MFA_STATUS: "Failed to get MFA status",
        CallKind.MFA_SETUP: "Failed to initialize MFA setup",
        CallKind.MFA_ENABLE: "Verification failed",
        CallKind.MFA_VERIFY: "Invalid code. Please try again.",
        CallKind.POLICY_STATUS: "Failed to get acceptance status",
        CallKind.POLICY_LIST: "Failed to load policies",
        CallKind.POLICY_ACCEPT: "Failed to accept policies",
    }
)


def describe_failure(kind: CallKind, error: Exception) -> str:
    """Message to surface for a failed call.

    Gate errors raised by adapters carry a user-facing message; anything else
    falls back to a generic per-call text.
    """
    if isinstance(error, GateError) and str(error):
        return str(error)
    return _DEFAULT_REASONS[kind]


async def attempt(
    kind: CallKind,
    call: Callable[[], Awaitable[T]],
    *,
    metrics: GateMetrics | None = None,
) -> Outcome[T]:
    """Run one backend call and capture its outcome.

    Args:
        kind: The backend operation being performed.
        call: Zero-argument coroutine factory performing the call.
        metrics: Optional metrics sink for call counts.

    Returns:
        ``Ok(value)`` on success, ``Failed`` for any ``Exception``.
        Task cancellation is not captured.
    """
    try:
        value = await call()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Backend call %s failed: %s", kind.value, exc)
        if metrics is not None:
            metrics.record_call(kind, success=False)
        return Failed(kind=kind, reason=describe_failure(kind, exc), error=exc)

    if metrics is not None:
        metrics.record_call(kind, success=True)
    return Ok(value)


__all__: list[str] = [
    "CallKind",
    "FailurePolicy",
    "DEFAULT_FAILURE_POLICIES",
    "Ok",
    "Failed",
    "Outcome",
    "attempt",
    "describe_failure",
]
