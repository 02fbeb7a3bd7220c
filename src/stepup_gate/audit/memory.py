"""In-memory audit trail for tests and local development."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports import IAuthAuditStore

if TYPE_CHECKING:
    from .events import AuthAuditEvent, AuthEventType


class InMemoryAuthAuditStore(IAuthAuditStore):
    """Keeps the gate's audit events in emission order.

    Example:
        ```python
        store = InMemoryAuthAuditStore()
        gate = AuthorizationGate(..., audit_store=store)

        gate.mount(identity)
        await gate.settle()
        await gate.audit.drain()

        store.trail(identity.user_id)  # [ACCESS_GRANTED, ...]
        ```
    """

    def __init__(self) -> None:
        self._events: list[AuthAuditEvent] = []

    @property
    def events(self) -> tuple[AuthAuditEvent, ...]:
        """Every recorded event, including ones without a principal."""
        return tuple(self._events)

    async def record(self, event: AuthAuditEvent) -> None:
        self._events.append(event)

    def trail(
        self, principal_id: str, *event_types: AuthEventType
    ) -> list[AuthAuditEvent]:
        """Events for one identity, oldest first.

        Args:
            principal_id: User ID the events belong to.
            *event_types: Only return these types when given.
        """
        return [
            event
            for event in self._events
            if event.principal_id == principal_id
            and (not event_types or event.event_type in event_types)
        ]


__all__: list[str] = ["InMemoryAuthAuditStore"]
