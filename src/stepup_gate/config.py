"""Gate configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType

from .identity import SUPER_ADMIN_ROLE
from .outcome import DEFAULT_FAILURE_POLICIES, CallKind, FailurePolicy


def _no_overrides() -> Mapping[CallKind, FailurePolicy]:
    return MappingProxyType({})


@dataclass(frozen=True)
class GateConfig:
    """Authorization gate configuration.

    Attributes:
        verification_ttl: How long a step-up verification stays valid in the
            tab session (default 24 hours).
        policy_acceptance_route: Route of the policy acceptance page. The gate
            redirects there and never blocks it.
        post_acceptance_route: Route to navigate to after policies are accepted.
        policy_exempt_roles: Roles that skip the policy check.
        failure_policies: Overrides for the default failure policy table.
            Copied into a read-only mapping and left out of the hash.
    """

    verification_ttl: timedelta = timedelta(hours=24)
    policy_acceptance_route: str = "/policy-acceptance"
    post_acceptance_route: str = "/client/dashboard"
    policy_exempt_roles: frozenset[str] = frozenset({SUPER_ADMIN_ROLE})
    failure_policies: Mapping[CallKind, FailurePolicy] = field(
        default_factory=_no_overrides, hash=False
    )

    def __post_init__(self) -> None:
        if self.verification_ttl <= timedelta(0):
            raise ValueError("verification_ttl must be positive")
        object.__setattr__(
            self, "failure_policies", MappingProxyType(dict(self.failure_policies))
        )

    def failure_policy(self, kind: CallKind) -> FailurePolicy:
        """Effective failure policy for a backend call."""
        return self.failure_policies.get(kind, DEFAULT_FAILURE_POLICIES[kind])


__all__: list[str] = ["GateConfig"]
