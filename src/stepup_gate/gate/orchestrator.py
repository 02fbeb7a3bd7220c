"""Authorization gate.

Sequences MFA status, enrollment, step-up verification and the policy check
for the signed-in identity, and decides what the host renders:

    load identity -> fetch MfaStatus -> (enroll | challenge | pass)
                  -> policy check -> protected content

All state lives in one :mod:`~stepup_gate.gate.state` value that only
changes through :func:`~stepup_gate.gate.state.reduce`. Network work runs
on asyncio tasks whose results are fed back as epoch-tagged events.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..audit.events import (
    access_granted_event,
    policy_redirected_event,
    session_cleared_event,
    status_failed_open_event,
)
from ..audit.recorder import AuditRecorder
from ..config import GateConfig
from ..exceptions import ActionDisabledError, BackupCodesNotAcknowledgedError
from ..mfa.challenge import StepUpChallenge
from ..mfa.enrollment import EnrollmentWizard
from ..mfa.models import MfaStatus
from ..observability import get_metrics
from ..outcome import CallKind, Failed, FailurePolicy, attempt
from ..policy.check import PolicyCheck, PolicyDecision
from ..trust import TrustChange
from .state import (
    Allowed,
    AwaitingPolicy,
    ChallengePassed,
    EnrollmentCompleted,
    GateEvent,
    GateState,
    GateView,
    IdentityChanged,
    IdentityRefreshed,
    Loading,
    NeedsEnrollment,
    NeedsVerification,
    PolicyAcceptanceRequired,
    PolicyCheckFailed,
    PolicySatisfied,
    Retry,
    StatusFailed,
    StatusLoaded,
    initial_state,
    reduce,
    render,
)

if TYPE_CHECKING:
    from ..identity import Identity
    from ..observability import GateMetrics
    from ..ports import (
        IAuthAuditStore,
        IMfaService,
        INavigator,
        IPolicyAcceptanceService,
    )
    from ..trust import SessionTrustStore

logger = logging.getLogger(__name__)

GateListener = Callable[[GateState], None]


class AuthorizationGate:
    """Step-up authorization gate for one tab.

    Example:
        ```python
        trust = SessionTrustStore.from_config(InMemoryTabStorage(), config)
        gate = AuthorizationGate(mfa, policies, trust, navigator, config=config)

        gate.mount(Identity.from_claims(claims))
        await gate.settle()

        if gate.view is GateView.CHALLENGE:
            challenge = gate.open_challenge()
            challenge.enter_code("123456")
            await challenge.submit()
            await gate.settle()
        ```
    """

    def __init__(
        self,
        mfa_service: IMfaService,
        policy_service: IPolicyAcceptanceService,
        trust_store: SessionTrustStore,
        navigator: INavigator,
        *,
        config: GateConfig | None = None,
        audit_store: IAuthAuditStore | None = None,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._mfa_service = mfa_service
        self._policy_service = policy_service
        self._trust_store = trust_store
        self._navigator = navigator
        self._config = config or GateConfig()
        self._audit = AuditRecorder(audit_store)
        self._metrics = metrics if metrics is not None else get_metrics()
        self._policy_check = PolicyCheck(
            policy_service,
            trust_store,
            config=self._config,
            audit=self._audit,
            metrics=self._metrics,
        )

        self._state: GateState = initial_state()
        self._listeners: list[GateListener] = []
        self._status_task: asyncio.Task[None] | None = None
        self._policy_task: asyncio.Task[None] | None = None
        self._wizard: EnrollmentWizard | None = None
        self._challenge: StepUpChallenge | None = None
        self._unsubscribe_trust = trust_store.subscribe(self._on_trust_change)

    # ── Read-only view ───────────────────────────────────────────

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._state.identity

    @property
    def view(self) -> GateView:
        return render(
            self._state,
            self._navigator.current_route,
            self._config.policy_acceptance_route,
        )

    @property
    def config(self) -> GateConfig:
        return self._config

    @property
    def audit(self) -> AuditRecorder:
        return self._audit

    @property
    def is_busy(self) -> bool:
        return any(
            task is not None and not task.done()
            for task in (self._status_task, self._policy_task)
        )

    # ── Lifecycle ────────────────────────────────────────────────

    def mount(self, identity: Identity | None) -> None:
        """Evaluate the gate for ``identity``.

        Called on first render and whenever the host's identity reference
        or route changes. A re-entrant mount for the same identity reuses
        the settled state and cached trust instead of re-running the
        backend sequence.
        """
        current = self._state.identity

        if identity is None:
            if current is not None:
                self.logout()
            return

        if current is None or not identity.is_same_user(current):
            if current is not None:
                self._discard_session(current, reason="identity_changed")
            self._dispatch(IdentityChanged(identity))
            self._start_status_fetch()
            return

        if identity != current:
            self._dispatch(IdentityRefreshed(identity))

        state = self._state
        if isinstance(state, Loading) and state.error is None:
            self._start_status_fetch()
        elif isinstance(state, AwaitingPolicy) and state.error is None:
            self._start_policy_check()

    def on_route_change(self) -> None:
        """Re-evaluate after the host navigated within the protected area."""
        self.mount(self._state.identity)

    def logout(self) -> None:
        """Discard all tab trust state and return to ``Loading``.

        The trust store is cleared synchronously; responses still in flight
        are discarded when they land.
        """
        self._discard_session(self._state.identity, reason="logout")
        self._dispatch(IdentityChanged(None))

    def retry(self) -> None:
        """Retry a fail-closed call, or re-check MFA status during enrollment.

        From ``NEEDS_ENROLLMENT`` the open wizard is dropped and the status is
        fetched again, which recovers an already-enrolled identity that was
        failed open into enrollment.

        Raises:
            ActionDisabledError: There is nothing to retry, or a wizard
                request is in flight.
            BackupCodesNotAcknowledgedError: The wizard holds backup codes
                that were not saved yet.
        """
        state = self._state
        if isinstance(state, Loading) and state.identity and state.error:
            self._dispatch(Retry(state.epoch))
            self._start_status_fetch()
        elif isinstance(state, AwaitingPolicy) and state.error:
            self._dispatch(Retry(state.epoch))
            self._start_policy_check()
        elif isinstance(state, NeedsEnrollment):
            wizard = self._wizard
            if wizard is not None:
                if wizard.is_busy:
                    raise ActionDisabledError("A request is already in progress")
                if wizard.backup_codes is not None and not wizard.acknowledged:
                    raise BackupCodesNotAcknowledgedError()
                wizard.cancel()
                self._wizard = None
            self._dispatch(Retry(state.epoch))
            self._start_status_fetch()
        else:
            raise ActionDisabledError("Nothing to retry")

    async def settle(self) -> None:
        """Wait until no status fetch or policy check is outstanding."""
        while True:
            pending = [
                task
                for task in (self._status_task, self._policy_task)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def dispose(self) -> None:
        """Detach from the trust store and abandon outstanding work."""
        self._unsubscribe_trust()
        self._abandon_tasks()
        self._listeners.clear()

    # ── Child flows ──────────────────────────────────────────────

    def open_enrollment(self) -> EnrollmentWizard:
        """Return the enrollment wizard for the current identity.

        Raises:
            ActionDisabledError: The gate is not in ``NEEDS_ENROLLMENT``.
        """
        state = self._state
        if not isinstance(state, NeedsEnrollment):
            raise ActionDisabledError("Enrollment is not required")

        if self._wizard is None or self._wizard.is_closed:
            epoch = state.epoch

            async def on_complete() -> None:
                await self._complete_enrollment(epoch)

            self._wizard = EnrollmentWizard(
                state.identity,
                self._mfa_service,
                on_complete=on_complete,
                audit=self._audit,
                metrics=self._metrics,
            )
        return self._wizard

    def open_challenge(self) -> StepUpChallenge:
        """Return the step-up challenge for the current identity.

        Raises:
            ActionDisabledError: The gate is not in ``NEEDS_VERIFICATION``.
        """
        state = self._state
        if not isinstance(state, NeedsVerification):
            raise ActionDisabledError("Verification is not required")

        if self._challenge is None or self._challenge.is_verified:
            epoch = state.epoch
            self._challenge = StepUpChallenge(
                state.identity,
                self._mfa_service,
                self._trust_store,
                on_verified=lambda: self._challenge_passed(epoch),
                audit=self._audit,
                metrics=self._metrics,
            )
        return self._challenge

    # ── Publish / subscribe ──────────────────────────────────────

    def subscribe(self, listener: GateListener) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Internals ────────────────────────────────────────────────

    def _dispatch(self, event: GateEvent) -> None:
        previous = self._state
        state = reduce(previous, event)
        if state is previous:
            return

        self._state = state
        if state.phase is not previous.phase:
            logger.debug(
                "Gate %s -> %s (epoch %s)",
                previous.phase.value,
                state.phase.value,
                state.epoch,
            )
            self._metrics.record_transition(state.phase)
            if isinstance(state, Allowed):
                self._audit.emit(access_granted_event(state.identity.user_id))

        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                logger.exception("Gate listener failed")

    def _start_status_fetch(self) -> None:
        if self._status_task is not None and not self._status_task.done():
            return
        state = self._state
        if not isinstance(state, Loading) or state.identity is None:
            return
        self._status_task = asyncio.get_running_loop().create_task(
            self._load_status(state.identity, state.epoch)
        )

    async def _load_status(self, identity: Identity, epoch: int) -> None:
        outcome = await attempt(
            CallKind.MFA_STATUS,
            lambda: self._mfa_service.get_status(identity),
            metrics=self._metrics,
        )
        if epoch != self._state.epoch:
            logger.debug("Discarding MFA status from epoch %s", epoch)
            return

        if isinstance(outcome, Failed):
            policy = self._config.failure_policy(CallKind.MFA_STATUS)
            if policy is not FailurePolicy.FAIL_OPEN:
                logger.error("MFA status unavailable: %s", outcome.reason)
                self._dispatch(StatusFailed(epoch, outcome.reason))
                return

            logger.warning(
                "MFA status unavailable, failing open to enrollment for %s: %s",
                identity.user_id,
                outcome.reason,
            )
            self._metrics.record_fail_open(CallKind.MFA_STATUS)
            self._audit.emit(status_failed_open_event(identity.user_id, outcome.reason))
            status = MfaStatus.unknown()
        else:
            status = outcome.value

        fresh = self._trust_store.has_fresh_verification()
        self._dispatch(StatusLoaded(epoch, status, fresh))
        if isinstance(self._state, AwaitingPolicy):
            self._start_policy_check()

    def _start_policy_check(self) -> None:
        state = self._state
        if not isinstance(state, AwaitingPolicy):
            return

        if self._trust_store.is_policy_check_complete():
            self._dispatch(PolicySatisfied(state.epoch))
            return
        if self._on_policy_route():
            return

        if self._policy_task is not None and not self._policy_task.done():
            return
        self._policy_task = asyncio.get_running_loop().create_task(
            self._check_policy(state.identity, state.epoch)
        )

    async def _check_policy(self, identity: Identity, epoch: int) -> None:
        result = await self._policy_check.evaluate(identity)
        state = self._state
        if epoch != state.epoch or not isinstance(state, AwaitingPolicy):
            return

        if result.allows_access:
            self._dispatch(PolicySatisfied(epoch))
        elif result.decision is PolicyDecision.ACCEPTANCE_REQUIRED:
            route = self._config.policy_acceptance_route
            if not self._on_policy_route():
                logger.info("Redirecting %s to policy acceptance", identity.user_id)
                self._navigator.redirect(route)
                self._audit.emit(policy_redirected_event(identity.user_id, route))
            self._dispatch(PolicyAcceptanceRequired(epoch))
        elif result.decision is PolicyDecision.UNRESOLVED:
            reason = result.reason or "Policy check failed"
            self._dispatch(PolicyCheckFailed(epoch, reason))
        elif result.decision is PolicyDecision.STALE:
            logger.debug("Trust store cleared during policy check, checking again")
            self._policy_task = None
            self._start_policy_check()

    async def _complete_enrollment(self, epoch: int) -> None:
        self._dispatch(EnrollmentCompleted(epoch))
        if epoch != self._state.epoch:
            return
        self._wizard = None
        self._start_status_fetch()
        await self.settle()

    def _challenge_passed(self, epoch: int) -> None:
        self._dispatch(ChallengePassed(epoch))
        if epoch == self._state.epoch:
            self._challenge = None
            self._start_policy_check()

    def _on_trust_change(self, change: TrustChange) -> None:
        state = self._state
        if change is TrustChange.POLICY_CHECK_COMPLETED and isinstance(
            state, AwaitingPolicy
        ):
            self._dispatch(PolicySatisfied(state.epoch))

    def _on_policy_route(self) -> bool:
        return self._navigator.current_route == self._config.policy_acceptance_route

    def _discard_session(self, identity: Identity | None, *, reason: str) -> None:
        self._trust_store.clear()
        if self._wizard is not None:
            self._wizard.cancel()
            self._wizard = None
        if self._challenge is not None:
            self._challenge.cancel()
            self._challenge = None
        self._abandon_tasks()
        self._audit.emit(
            session_cleared_event(
                identity.user_id if identity is not None else None, reason=reason
            )
        )

    def _abandon_tasks(self) -> None:
        for task in (self._status_task, self._policy_task):
            if task is not None and not task.done():
                task.cancel()
        self._status_task = None
        self._policy_task = None


__all__: list[str] = ["AuthorizationGate", "GateListener"]
