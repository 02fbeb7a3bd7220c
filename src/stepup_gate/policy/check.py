"""Policy acceptance check and acceptance page.

Both classes here are the owner path of the ``policy_check_complete`` flag:
``PolicyCheck`` caches a settled check (exempt, nothing outstanding, or
failed open) and ``PolicyAcceptanceForm`` caches an explicit acceptance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..audit.events import policy_accepted_event, policy_check_failed_open_event
from ..config import GateConfig
from ..exceptions import ActionDisabledError
from ..outcome import CallKind, Failed, FailurePolicy, attempt

if TYPE_CHECKING:
    from ..audit.recorder import AuditRecorder
    from ..identity import Identity
    from ..observability import GateMetrics
    from ..ports import INavigator, IPolicyAcceptanceService
    from ..trust import SessionTrustStore
    from .models import PublishedPolicy

logger = logging.getLogger(__name__)


class PolicyDecision(Enum):
    CACHED = "cached"
    EXEMPT = "exempt"
    SATISFIED = "satisfied"
    FAILED_OPEN = "failed_open"
    ACCEPTANCE_REQUIRED = "acceptance_required"
    UNRESOLVED = "unresolved"
    STALE = "stale"


_ALLOWING = frozenset(
    {
        PolicyDecision.CACHED,
        PolicyDecision.EXEMPT,
        PolicyDecision.SATISFIED,
        PolicyDecision.FAILED_OPEN,
    }
)


@dataclass(frozen=True)
class PolicyCheckResult:
    decision: PolicyDecision
    reason: str | None = None

    @property
    def allows_access(self) -> bool:
        return self.decision in _ALLOWING


class PolicyCheck:
    """Decides whether outstanding policies block the identity.

    Order of evaluation:

    1. ``policy_check_complete`` already set in this tab session: no call.
    2. Exempt identity (super admin or no organization): no call.
    3. Ask the policy service; a failure follows the configured policy
       (fail open by default).
    """

    def __init__(
        self,
        policy_service: IPolicyAcceptanceService,
        trust_store: SessionTrustStore,
        *,
        config: GateConfig | None = None,
        audit: AuditRecorder | None = None,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._policy_service = policy_service
        self._trust_store = trust_store
        self._config = config or GateConfig()
        self._audit = audit
        self._metrics = metrics

    async def evaluate(self, identity: Identity) -> PolicyCheckResult:
        if self._trust_store.is_policy_check_complete():
            return PolicyCheckResult(PolicyDecision.CACHED)

        generation = self._trust_store.generation
        if identity.is_policy_exempt(self._config.policy_exempt_roles):
            return self._settle(PolicyDecision.EXEMPT, generation)

        outcome = await attempt(
            CallKind.POLICY_STATUS,
            lambda: self._policy_service.get_acceptance_status(identity),
            metrics=self._metrics,
        )

        if generation != self._trust_store.generation:
            return PolicyCheckResult(PolicyDecision.STALE)

        if isinstance(outcome, Failed):
            policy = self._config.failure_policy(CallKind.POLICY_STATUS)
            if policy is not FailurePolicy.FAIL_OPEN:
                logger.error("Policy status unavailable: %s", outcome.reason)
                return PolicyCheckResult(PolicyDecision.UNRESOLVED, outcome.reason)

            logger.warning(
                "Policy status unavailable, failing open for %s: %s",
                identity.user_id,
                outcome.reason,
            )
            if self._metrics is not None:
                self._metrics.record_fail_open(CallKind.POLICY_STATUS)
            if self._audit is not None:
                self._audit.emit(
                    policy_check_failed_open_event(identity.user_id, outcome.reason)
                )
            return self._settle(PolicyDecision.FAILED_OPEN, generation, outcome.reason)

        if outcome.value.needs_acceptance:
            return PolicyCheckResult(PolicyDecision.ACCEPTANCE_REQUIRED)
        return self._settle(PolicyDecision.SATISFIED, generation)

    def _settle(
        self, decision: PolicyDecision, generation: int, reason: str | None = None
    ) -> PolicyCheckResult:
        if not self._trust_store.mark_policy_check_complete(generation=generation):
            return PolicyCheckResult(PolicyDecision.STALE)
        return PolicyCheckResult(decision, reason)


class PolicyAcceptanceForm:
    """State of the policy acceptance page.

    Every listed policy must be toggled on before ``submit()`` is enabled.
    """

    def __init__(
        self,
        identity: Identity,
        policy_service: IPolicyAcceptanceService,
        trust_store: SessionTrustStore,
        navigator: INavigator,
        *,
        config: GateConfig | None = None,
        audit: AuditRecorder | None = None,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._identity = identity
        self._policy_service = policy_service
        self._trust_store = trust_store
        self._navigator = navigator
        self._config = config or GateConfig()
        self._audit = audit
        self._metrics = metrics

        self._policies: list[PublishedPolicy] = []
        self._accepted: set[str] = set()
        self._loaded = False
        self._busy = False
        self._error: str | None = None

    @property
    def policies(self) -> list[PublishedPolicy]:
        return list(self._policies)

    @property
    def accepted_ids(self) -> frozenset[str]:
        return frozenset(self._accepted)

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def all_accepted(self) -> bool:
        return all(policy.id in self._accepted for policy in self._policies)

    @property
    def can_submit(self) -> bool:
        return self._loaded and not self._busy and self.all_accepted

    async def load(self) -> bool:
        """Fetch the latest published policies."""
        if self._busy:
            raise ActionDisabledError("Policies are already loading")

        self._busy = True
        self._error = None
        try:
            outcome = await attempt(
                CallKind.POLICY_LIST,
                self._policy_service.list_latest_policies,
                metrics=self._metrics,
            )
        finally:
            self._busy = False

        if isinstance(outcome, Failed):
            self._error = outcome.reason
            return False

        self._policies = list(outcome.value)
        known = {policy.id for policy in self._policies}
        self._accepted &= known
        self._loaded = True
        return True

    def toggle(self, policy_id: str, accepted: bool | None = None) -> bool:
        """Flip (or set) acceptance of one policy. Returns the new value."""
        if policy_id not in {policy.id for policy in self._policies}:
            raise KeyError(policy_id)

        value = (policy_id not in self._accepted) if accepted is None else accepted
        if value:
            self._accepted.add(policy_id)
        else:
            self._accepted.discard(policy_id)
        return value

    async def submit(self) -> bool:
        """Record acceptance of every listed policy.

        On success the policy check is cached for the tab session and the
        navigator moves to the post-acceptance route.

        Raises:
            ActionDisabledError: Not every policy is toggled on, policies are
                not loaded, or a request is in progress.
        """
        if not self.can_submit:
            raise ActionDisabledError("Accept every policy to continue")

        policy_ids = [policy.id for policy in self._policies]
        generation = self._trust_store.generation
        self._busy = True
        self._error = None
        try:
            outcome = await attempt(
                CallKind.POLICY_ACCEPT,
                lambda: self._policy_service.accept(self._identity, policy_ids),
                metrics=self._metrics,
            )
        finally:
            self._busy = False

        if isinstance(outcome, Failed):
            self._error = outcome.reason
            return False

        if not self._trust_store.mark_policy_check_complete(generation=generation):
            return False

        logger.info("Policies accepted by %s", self._identity.user_id)
        if self._audit is not None:
            self._audit.emit(policy_accepted_event(self._identity.user_id, policy_ids))
        self._navigator.redirect(self._config.post_acceptance_route)
        return True


__all__: list[str] = [
    "PolicyDecision",
    "PolicyCheckResult",
    "PolicyCheck",
    "PolicyAcceptanceForm",
]
