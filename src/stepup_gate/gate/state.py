"""Gate states, events and the pure reducer.

The gate's state is one value of a tagged union::

    Loading -> NeedsEnrollment | NeedsVerification | AwaitingPolicy | Allowed

Every state carries the ``epoch`` it belongs to. The epoch is incremented
whenever the identity changes (login, logout, switch user). Events produced
by asynchronous work carry the epoch they were issued under and ``reduce``
ignores any event whose epoch no longer matches, which is how late
responses after logout are discarded.

This module performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Union

from ..identity import Identity
from ..mfa.models import MfaStatus


class GatePhase(str, Enum):
    LOADING = "loading"
    NEEDS_ENROLLMENT = "needs_enrollment"
    NEEDS_VERIFICATION = "needs_verification"
    VERIFIED_AWAITING_POLICY = "verified_awaiting_policy"
    VERIFIED_AND_ALLOWED = "verified_and_allowed"


class GateView(str, Enum):
    """What the host should render for the protected subtree."""

    LOADING = "loading"
    ENROLLMENT = "enrollment"
    CHALLENGE = "challenge"
    CONTENT = "content"


# ═══════════════════════════════════════════════════════════════
# STATES
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Loading:
    """Waiting for MFA status, or signed out when ``identity`` is None.

    ``error`` is set when a fail-closed status call failed; ``retry`` clears it.
    """

    phase: ClassVar[GatePhase] = GatePhase.LOADING

    identity: Identity | None
    epoch: int
    error: str | None = None


@dataclass(frozen=True)
class NeedsEnrollment:
    phase: ClassVar[GatePhase] = GatePhase.NEEDS_ENROLLMENT

    identity: Identity
    epoch: int
    status: MfaStatus


@dataclass(frozen=True)
class NeedsVerification:
    phase: ClassVar[GatePhase] = GatePhase.NEEDS_VERIFICATION

    identity: Identity
    epoch: int


@dataclass(frozen=True)
class AwaitingPolicy:
    """MFA settled; waiting for the policy check.

    ``redirected`` is set once the identity was sent to the acceptance page.
    """

    phase: ClassVar[GatePhase] = GatePhase.VERIFIED_AWAITING_POLICY

    identity: Identity
    epoch: int
    redirected: bool = False
    error: str | None = None


@dataclass(frozen=True)
class Allowed:
    phase: ClassVar[GatePhase] = GatePhase.VERIFIED_AND_ALLOWED

    identity: Identity
    epoch: int


GateState = Union[Loading, NeedsEnrollment, NeedsVerification, AwaitingPolicy, Allowed]


# ═══════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class IdentityChanged:
    """A different identity (or none) is now signed in. Always applies."""

    identity: Identity | None


@dataclass(frozen=True)
class IdentityRefreshed:
    """Same user, updated attributes (e.g. organization assigned)."""

    identity: Identity


@dataclass(frozen=True)
class StatusLoaded:
    epoch: int
    status: MfaStatus
    verification_fresh: bool


@dataclass(frozen=True)
class StatusFailed:
    epoch: int
    reason: str


@dataclass(frozen=True)
class EnrollmentCompleted:
    epoch: int


@dataclass(frozen=True)
class ChallengePassed:
    epoch: int


@dataclass(frozen=True)
class PolicySatisfied:
    epoch: int


@dataclass(frozen=True)
class PolicyAcceptanceRequired:
    epoch: int


@dataclass(frozen=True)
class PolicyCheckFailed:
    epoch: int
    reason: str


@dataclass(frozen=True)
class Retry:
    """Re-run a failed call, or re-fetch MFA status from ``NeedsEnrollment``."""

    epoch: int


GateEvent = Union[
    IdentityChanged,
    IdentityRefreshed,
    StatusLoaded,
    StatusFailed,
    EnrollmentCompleted,
    ChallengePassed,
    PolicySatisfied,
    PolicyAcceptanceRequired,
    PolicyCheckFailed,
    Retry,
]


# ═══════════════════════════════════════════════════════════════
# REDUCER
# ═══════════════════════════════════════════════════════════════


def initial_state() -> GateState:
    return Loading(identity=None, epoch=0)


def reduce(state: GateState, event: GateEvent) -> GateState:
    """Apply ``event`` to ``state``.

    Returns ``state`` itself (same object) when the event does not apply:
    wrong epoch, or not valid in the current state.
    """
    if isinstance(event, IdentityChanged):
        return Loading(identity=event.identity, epoch=state.epoch + 1)

    if isinstance(event, IdentityRefreshed):
        if state.identity is None or state.identity.user_id != event.identity.user_id:
            return state
        return replace(state, identity=event.identity)

    if event.epoch != state.epoch:
        return state

    if isinstance(state, Loading):
        return _reduce_loading(state, event)

    if isinstance(state, NeedsEnrollment) and isinstance(
        event, (EnrollmentCompleted, Retry)
    ):
        return Loading(identity=state.identity, epoch=state.epoch)

    if isinstance(state, NeedsVerification) and isinstance(event, ChallengePassed):
        return AwaitingPolicy(identity=state.identity, epoch=state.epoch)

    if isinstance(state, AwaitingPolicy):
        return _reduce_awaiting_policy(state, event)

    return state


def _reduce_loading(state: Loading, event: GateEvent) -> GateState:
    identity = state.identity
    if identity is None:
        return state

    if isinstance(event, StatusLoaded):
        # Enrollment is checked first: no trust cache can skip it.
        if event.status.requires_enrollment:
            return NeedsEnrollment(
                identity=identity, epoch=state.epoch, status=event.status
            )
        if event.verification_fresh:
            return AwaitingPolicy(identity=identity, epoch=state.epoch)
        return NeedsVerification(identity=identity, epoch=state.epoch)

    if isinstance(event, StatusFailed):
        return replace(state, error=event.reason)

    if isinstance(event, Retry) and state.error is not None:
        return replace(state, error=None)

    return state


def _reduce_awaiting_policy(state: AwaitingPolicy, event: GateEvent) -> GateState:
    if isinstance(event, PolicySatisfied):
        return Allowed(identity=state.identity, epoch=state.epoch)
    if isinstance(event, PolicyAcceptanceRequired):
        return replace(state, redirected=True, error=None)
    if isinstance(event, PolicyCheckFailed):
        return replace(state, error=event.reason)
    if isinstance(event, Retry) and state.error is not None:
        return replace(state, error=None)
    return state


# ═══════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════


def render(state: GateState, route: str, policy_acceptance_route: str) -> GateView:
    """Map a state to what the host renders.

    Protected content is only ever rendered from ``Allowed``, or from
    ``AwaitingPolicy`` on the acceptance page itself so that the page that
    satisfies the gate stays reachable.
    """
    if isinstance(state, NeedsEnrollment):
        return GateView.ENROLLMENT
    if isinstance(state, NeedsVerification):
        return GateView.CHALLENGE
    if isinstance(state, Allowed):
        return GateView.CONTENT
    if isinstance(state, AwaitingPolicy) and route == policy_acceptance_route:
        return GateView.CONTENT
    return GateView.LOADING


__all__: list[str] = [
    "GatePhase",
    "GateView",
    "Loading",
    "NeedsEnrollment",
    "NeedsVerification",
    "AwaitingPolicy",
    "Allowed",
    "GateState",
    "IdentityChanged",
    "IdentityRefreshed",
    "StatusLoaded",
    "StatusFailed",
    "EnrollmentCompleted",
    "ChallengePassed",
    "PolicySatisfied",
    "PolicyAcceptanceRequired",
    "PolicyCheckFailed",
    "Retry",
    "GateEvent",
    "initial_state",
    "reduce",
    "render",
]
