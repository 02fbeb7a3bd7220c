"""Fire-and-forget audit recording for the gate's state machine.

Gate transitions happen in synchronous code paths (listener callbacks,
``logout()``), so events are logged immediately and persisted on a
background task. Persistence failures are logged, never raised into the
gate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..ports import IAuthAuditStore
    from .events import AuthAuditEvent

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Logs audit events and forwards them to an optional store."""

    def __init__(self, store: IAuthAuditStore | None = None) -> None:
        self._store = store
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def store(self) -> IAuthAuditStore | None:
        return self._store

    def emit(self, event: AuthAuditEvent) -> None:
        """Log ``event`` and schedule it for persistence."""
        level = logging.INFO if event.success else logging.WARNING
        logger.log(
            level,
            "%s principal=%s error=%s",
            event.event_type.value,
            event.principal_id,
            event.error_message,
        )
        if self._store is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; audit event %s not persisted",
                event.event_type.value,
            )
            return

        task = loop.create_task(self._persist(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _persist(self, event: AuthAuditEvent) -> None:
        if self._store is None:
            return
        try:
            await self._store.record(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to persist audit event %s", event.event_type.value)


__all__: list[str] = ["AuditRecorder"]
