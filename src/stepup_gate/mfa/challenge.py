"""Step-up challenge.

Verifies a 6-digit TOTP code or a 9-character backup code against the
backend and, on success, records a fresh ``SessionVerification``. This is
the only writer of the verification keys in the trust store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..audit.events import mfa_failed_event, mfa_verified_event
from ..exceptions import ActionDisabledError
from ..outcome import CallKind, Failed, attempt
from .codes import format_error, is_well_formed, normalize_input
from .models import VerificationMode

if TYPE_CHECKING:
    from ..audit.recorder import AuditRecorder
    from ..identity import Identity
    from ..observability import GateMetrics
    from ..ports import IMfaService
    from ..trust import SessionTrustStore

logger = logging.getLogger(__name__)


class StepUpChallenge:
    """Modal state of the step-up challenge.

    There is no client-side lockout: a rejected code clears the input and
    the challenge can be retried indefinitely. Rate limiting is left to the
    backend.

    Example:
        ```python
        challenge = StepUpChallenge(identity, mfa_service, trust_store)

        challenge.enter_code("123 456")
        if await challenge.submit():
            ...  # verification recorded
        else:
            print(challenge.error)
        ```
    """

    def __init__(
        self,
        identity: Identity,
        mfa_service: IMfaService,
        trust_store: SessionTrustStore,
        *,
        on_verified: Callable[[], None] | None = None,
        audit: AuditRecorder | None = None,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._identity = identity
        self._mfa_service = mfa_service
        self._trust_store = trust_store
        self._on_verified = on_verified
        self._audit = audit
        self._metrics = metrics

        self._mode = VerificationMode.TOTP
        self._code = ""
        self._error: str | None = None
        self._submitting = False
        self._verified = False
        self._cancelled = False

    @property
    def mode(self) -> VerificationMode:
        return self._mode

    @property
    def code(self) -> str:
        return self._code

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def is_verified(self) -> bool:
        return self._verified

    @property
    def can_submit(self) -> bool:
        """Whether the submit action is enabled."""
        return (
            not self._submitting
            and not self._verified
            and not self._cancelled
            and is_well_formed(self._code, self._mode)
        )

    # ── Input ────────────────────────────────────────────────────

    def set_mode(self, mode: VerificationMode) -> None:
        """Switch between TOTP and backup-code input. Clears input and error."""
        self._ensure_idle()
        if mode is self._mode:
            return
        self._mode = mode
        self._code = ""
        self._error = None

    def toggle_mode(self) -> VerificationMode:
        self.set_mode(self._mode.toggled())
        return self._mode

    def enter_code(self, raw: str) -> str:
        """Replace the current input. Returns the normalized value."""
        self._ensure_idle()
        self._code = normalize_input(raw, self._mode)
        self._error = None
        return self._code

    # ── Submission ───────────────────────────────────────────────

    async def submit(self) -> bool:
        """Verify the current code.

        Returns:
            True when the code was accepted and a verification recorded.

        Raises:
            ActionDisabledError: A submission is already outstanding, or the
                challenge already completed or was cancelled.
        """
        self._ensure_idle()
        if self._verified:
            raise ActionDisabledError("Challenge already completed")

        code = self._code
        mode = self._mode
        if not is_well_formed(code, mode):
            self._error = format_error(mode)
            return False

        generation = self._trust_store.generation
        self._submitting = True
        self._error = None
        try:
            outcome = await attempt(
                CallKind.MFA_VERIFY,
                lambda: self._mfa_service.verify(
                    self._identity, code, is_backup_code=mode.is_backup_code
                ),
                metrics=self._metrics,
            )
        finally:
            self._submitting = False

        if self._cancelled:
            logger.debug("Discarding verify result for cancelled challenge")
            return False

        if isinstance(outcome, Failed):
            self._code = ""
            self._error = outcome.reason
            self._emit_failed(outcome.reason, mode)
            return False

        if self._trust_store.record_verification(generation=generation) is None:
            return False

        self._verified = True
        logger.info("Step-up verification passed for %s", self._identity.user_id)
        if self._audit is not None:
            self._audit.emit(
                mfa_verified_event(self._identity.user_id, method=mode.value)
            )
        if self._on_verified is not None:
            self._on_verified()
        return True

    def cancel(self) -> None:
        """Discard any outstanding or future result (logout, identity change)."""
        self._cancelled = True
        self._code = ""

    def _ensure_idle(self) -> None:
        if self._cancelled:
            raise ActionDisabledError("Challenge was cancelled")
        if self._submitting:
            raise ActionDisabledError("Verification already in progress")

    def _emit_failed(self, reason: str, mode: VerificationMode) -> None:
        if self._audit is not None:
            self._audit.emit(
                mfa_failed_event(self._identity.user_id, reason, method=mode.value)
            )


__all__: list[str] = ["StepUpChallenge"]
