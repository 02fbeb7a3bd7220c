"""Enrollment wizard.

Three ordered stages:

1. ``ARTIFACT``: fetch a shared secret and enrollment image once per wizard
   session and show them. Advances on explicit user action only.
2. ``CONFIRMATION``: submit a 6-digit code to verify-and-enable. A rejected
   code keeps the wizard here with the input cleared; the artifact is not
   re-fetched.
3. ``BACKUP_CODES``: show the backup codes. ``complete()`` stays disabled
   until ``acknowledge_backup_codes()`` has fired at least once.

Nothing moves backwards from stage 3, not even across a close and reopen.
Stage 2 may only go back to stage 1 with the same artifact.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from enum import IntEnum
from typing import TYPE_CHECKING

from ..audit.events import (
    mfa_enable_failed_event,
    mfa_enabled_event,
    mfa_setup_started_event,
)
from ..exceptions import ActionDisabledError, BackupCodesNotAcknowledgedError
from ..outcome import CallKind, Failed, attempt
from .codes import format_error, is_well_formed, normalize_input
from .models import BackupCodeSet, EnrollmentArtifact, VerificationMode

if TYPE_CHECKING:
    from ..audit.recorder import AuditRecorder
    from ..identity import Identity
    from ..observability import GateMetrics
    from ..ports import IMfaService

logger = logging.getLogger(__name__)


class EnrollmentStage(IntEnum):
    ARTIFACT = 1
    CONFIRMATION = 2
    BACKUP_CODES = 3


@dataclass(frozen=True)
class BackupCodeDownload:
    """File offered to the user when acknowledging backup codes."""

    filename: str
    content: str


class EnrollmentWizard:
    """State of one enrollment wizard session.

    Example:
        ```python
        wizard = EnrollmentWizard(identity, mfa_service, on_complete=gate.refresh)

        await wizard.start()
        wizard.advance_to_confirmation()
        wizard.enter_code("123456")
        if await wizard.confirm():
            download = wizard.acknowledge_backup_codes()
            await wizard.complete()
        ```
    """

    def __init__(
        self,
        identity: Identity,
        mfa_service: IMfaService,
        *,
        on_complete: Callable[[], Awaitable[None]] | None = None,
        audit: AuditRecorder | None = None,
        metrics: GateMetrics | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._identity = identity
        self._mfa_service = mfa_service
        self._on_complete = on_complete
        self._audit = audit
        self._metrics = metrics
        self._today = today

        self._stage = EnrollmentStage.ARTIFACT
        self._artifact: EnrollmentArtifact | None = None
        self._backup_codes: BackupCodeSet | None = None
        self._code = ""
        self._error: str | None = None
        self._busy = False
        self._acknowledged = False
        self._completed = False
        self._closed = False

    # ── Read-only view ───────────────────────────────────────────

    @property
    def stage(self) -> EnrollmentStage:
        return self._stage

    @property
    def artifact(self) -> EnrollmentArtifact | None:
        return self._artifact

    @property
    def backup_codes(self) -> BackupCodeSet | None:
        return self._backup_codes

    @property
    def code(self) -> str:
        return self._code

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def can_complete(self) -> bool:
        """Whether the "complete setup" action is enabled."""
        return (
            self._stage is EnrollmentStage.BACKUP_CODES
            and self._acknowledged
            and not self._busy
            and not self._completed
            and not self._closed
        )

    # ── Stage 1: artifact ────────────────────────────────────────

    async def start(self) -> bool:
        """Fetch the enrollment artifact for this wizard session.

        Safe to call again after a failure to retry. Once an artifact is held
        it is reused and no new secret is requested.

        Returns:
            True when an artifact is available.
        """
        self._ensure_active()
        if self._artifact is not None:
            return True
        if self._stage is not EnrollmentStage.ARTIFACT:
            raise ActionDisabledError("Artifact can only be fetched at stage 1")

        self._busy = True
        self._error = None
        try:
            outcome = await attempt(
                CallKind.MFA_SETUP,
                lambda: self._mfa_service.setup(self._identity),
                metrics=self._metrics,
            )
        finally:
            self._busy = False

        if self._closed:
            return False
        if isinstance(outcome, Failed):
            self._error = outcome.reason
            return False

        self._artifact = outcome.value
        if self._audit is not None:
            self._audit.emit(mfa_setup_started_event(self._identity.user_id))
        return True

    def copy_secret(self) -> str:
        """Shared secret for manual entry into an authenticator app."""
        if self._artifact is None:
            raise ActionDisabledError("No enrollment artifact loaded")
        return self._artifact.shared_secret

    def advance_to_confirmation(self) -> None:
        self._ensure_active()
        if self._stage is not EnrollmentStage.ARTIFACT or self._artifact is None:
            raise ActionDisabledError("Enrollment artifact not loaded")
        self._stage = EnrollmentStage.CONFIRMATION
        self._code = ""
        self._error = None

    # ── Stage 2: confirmation ────────────────────────────────────

    def back_to_artifact(self) -> None:
        """Return to the artifact stage, keeping the same artifact."""
        self._ensure_active()
        if self._stage is not EnrollmentStage.CONFIRMATION:
            raise ActionDisabledError("Can only go back from the confirmation stage")
        self._stage = EnrollmentStage.ARTIFACT
        self._code = ""
        self._error = None

    def enter_code(self, raw: str) -> str:
        self._ensure_active()
        if self._stage is not EnrollmentStage.CONFIRMATION:
            raise ActionDisabledError("Code entry is only available at stage 2")
        self._code = normalize_input(raw, VerificationMode.TOTP)
        self._error = None
        return self._code

    async def confirm(self) -> bool:
        """Submit the confirmation code to verify-and-enable.

        Returns:
            True when MFA was enabled and the wizard moved to stage 3.
        """
        self._ensure_active()
        if self._stage is not EnrollmentStage.CONFIRMATION:
            raise ActionDisabledError("Confirmation is only available at stage 2")

        code = self._code
        if not is_well_formed(code, VerificationMode.TOTP):
            self._error = format_error(VerificationMode.TOTP)
            return False

        self._busy = True
        self._error = None
        try:
            outcome = await attempt(
                CallKind.MFA_ENABLE,
                lambda: self._mfa_service.verify_and_enable(self._identity, code),
                metrics=self._metrics,
            )
        finally:
            self._busy = False

        if self._closed:
            return False
        if isinstance(outcome, Failed):
            self._code = ""
            self._error = outcome.reason
            if self._audit is not None:
                self._audit.emit(
                    mfa_enable_failed_event(self._identity.user_id, outcome.reason)
                )
            return False

        self._backup_codes = outcome.value
        self._stage = EnrollmentStage.BACKUP_CODES
        self._code = ""
        logger.info("MFA enabled for %s", self._identity.user_id)
        if self._audit is not None:
            self._audit.emit(
                mfa_enabled_event(self._identity.user_id, len(outcome.value))
            )
        return True

    # ── Stage 3: backup codes ────────────────────────────────────

    def acknowledge_backup_codes(self) -> BackupCodeDownload:
        """Produce the backup-code file and enable completion.

        Can be fired repeatedly; the acknowledgment never regresses.
        """
        self._ensure_active()
        codes = self._backup_codes
        if self._stage is not EnrollmentStage.BACKUP_CODES or codes is None:
            raise ActionDisabledError("Backup codes are not available yet")

        self._acknowledged = True
        return BackupCodeDownload(
            filename=BackupCodeSet.download_filename(self._today()),
            content=codes.render_download(),
        )

    async def complete(self) -> None:
        """Finish enrollment and hand control back to the gate.

        Raises:
            BackupCodesNotAcknowledgedError: Backup codes were not saved.
            ActionDisabledError: Not at stage 3, or completion is in progress.
        """
        self._ensure_active()
        if self._stage is not EnrollmentStage.BACKUP_CODES:
            raise ActionDisabledError("Enrollment is not at the backup-code stage")
        if self._completed:
            raise ActionDisabledError("Enrollment already completed")
        if not self._acknowledged:
            raise BackupCodesNotAcknowledgedError()

        self._busy = True
        try:
            if self._on_complete is not None:
                await self._on_complete()
        finally:
            self._busy = False
        self._completed = True

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Close the wizard.

        Before MFA is enabled this discards the artifact and the wizard is
        done. Once backup codes are held MFA is already on, so the wizard keeps
        its stage-3 state and can be reopened to finish. Refused at stage 3
        until the codes are acknowledged, since they cannot be shown again.
        """
        if self._busy:
            raise ActionDisabledError("Cannot close while a request is in progress")
        if self._backup_codes is not None:
            if not self._acknowledged:
                raise BackupCodesNotAcknowledgedError()
            return
        self._discard()

    def cancel(self) -> None:
        """Discard the wizard unconditionally (logout, identity change)."""
        self._discard()

    def _discard(self) -> None:
        self._closed = True
        self._artifact = None
        self._code = ""

    def _ensure_active(self) -> None:
        if self._closed:
            raise ActionDisabledError("Enrollment wizard is closed")
        if self._busy:
            raise ActionDisabledError("A request is already in progress")


__all__: list[str] = ["EnrollmentStage", "EnrollmentWizard", "BackupCodeDownload"]
