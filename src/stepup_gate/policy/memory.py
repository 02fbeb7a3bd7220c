"""In-memory policy acceptance service for testing and development."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from ..exceptions import PolicyAcceptanceError
from ..ports import IPolicyAcceptanceService
from .models import PolicyAcceptanceStatus, PolicyType, PublishedPolicy

if TYPE_CHECKING:
    from ..identity import Identity


def default_policies() -> list[PublishedPolicy]:
    """Terms of service and privacy policy, version 1."""
    return [
        PublishedPolicy(
            id="tos-v1",
            type=PolicyType.TERMS_OF_SERVICE.value,
            title="Terms of Service",
            version=1,
        ),
        PublishedPolicy(
            id="privacy-v1",
            type=PolicyType.PRIVACY_POLICY.value,
            title="Privacy Policy",
            version=1,
        ),
    ]


class InMemoryPolicyAcceptanceService(IPolicyAcceptanceService):
    """Keeps the latest version of each policy type and who accepted what.

    An identity needs acceptance while any latest policy id is missing from
    its accepted set. Publishing a new version of a type therefore makes
    every identity accept again.
    """

    def __init__(self, policies: list[PublishedPolicy] | None = None) -> None:
        self._latest: dict[str, PublishedPolicy] = {}
        self._accepted: dict[str, set[str]] = defaultdict(set)
        for policy in default_policies() if policies is None else policies:
            self.publish(policy)

    def publish(self, policy: PublishedPolicy) -> None:
        """Make ``policy`` the latest version of its type."""
        self._latest[policy.type] = policy

    async def get_acceptance_status(
        self, identity: Identity
    ) -> PolicyAcceptanceStatus:
        accepted = self._accepted.get(identity.user_id, set())
        outstanding = [p for p in self._latest.values() if p.id not in accepted]
        return PolicyAcceptanceStatus(needs_acceptance=bool(outstanding))

    async def list_latest_policies(self) -> list[PublishedPolicy]:
        return list(self._latest.values())

    async def accept(self, identity: Identity, policy_ids: list[str]) -> None:
        known = {policy.id for policy in self._latest.values()}
        unknown = [pid for pid in policy_ids if pid not in known]
        if unknown:
            raise PolicyAcceptanceError(f"Unknown policy: {', '.join(unknown)}")
        self._accepted[identity.user_id].update(policy_ids)

    def accepted_by(self, user_id: str) -> frozenset[str]:
        return frozenset(self._accepted.get(user_id, set()))


__all__: list[str] = ["InMemoryPolicyAcceptanceService", "default_policies"]
