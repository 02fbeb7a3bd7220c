"""Session trust store.

Holds the two tab-scoped trust facts of the gate:

- ``SessionVerification``: the user passed a step-up challenge at
  ``verified_at``. Valid only while ``now - verified_at < verification_ttl``.
- ``policy_check_complete``: policy acceptance is settled for this tab session.

Each fact has a single writer: the step-up challenge records verifications,
the policy check marks acceptance. Everything is removed on logout.

Writes that follow a network round-trip pass the ``generation`` they read
before the call. ``clear()`` bumps the generation, so a response that lands
after logout cannot resurrect trust.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from .storage import ITabStorage

if TYPE_CHECKING:
    from .config import GateConfig

logger = logging.getLogger(__name__)

MFA_VERIFIED_KEY = "mfa_verified"
MFA_VERIFIED_AT_KEY = "mfa_verified_at"
POLICY_CHECK_COMPLETE_KEY = "policy_check_complete"

TRUST_KEYS: tuple[str, ...] = (
    MFA_VERIFIED_KEY,
    MFA_VERIFIED_AT_KEY,
    POLICY_CHECK_COMPLETE_KEY,
)

DEFAULT_VERIFICATION_TTL = timedelta(hours=24)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class TrustChange(Enum):
    """Notifications published by the trust store."""

    VERIFICATION_RECORDED = "verification_recorded"
    POLICY_CHECK_COMPLETED = "policy_check_completed"
    CLEARED = "cleared"


TrustListener = Callable[[TrustChange], None]


@dataclass(frozen=True)
class SessionVerification:
    """Proof that the step-up challenge was passed in this tab session."""

    verified_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.verified_at


class SessionTrustStore:
    """Tab-scoped trust caches with expiry and logout invalidation.

    These caches are not a security boundary: the backend stays authoritative
    on every full gate mount. They only decide whether a challenge or a
    policy round-trip can be skipped.

    Example:
        ```python
        store = SessionTrustStore(InMemoryTabStorage(), clock=clock)

        store.record_verification()
        assert store.has_fresh_verification()

        store.clear()  # logout
        assert store.get_verification() is None
        ```
    """

    def __init__(
        self,
        storage: ITabStorage,
        *,
        clock: Clock = utc_now,
        verification_ttl: timedelta = DEFAULT_VERIFICATION_TTL,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._verification_ttl = verification_ttl
        self._generation = 0
        self._listeners: list[TrustListener] = []

    @classmethod
    def from_config(
        cls, storage: ITabStorage, config: GateConfig, *, clock: Clock = utc_now
    ) -> SessionTrustStore:
        """Create a store using the gate's configured verification TTL."""
        return cls(storage, clock=clock, verification_ttl=config.verification_ttl)

    @property
    def generation(self) -> int:
        """Incremented by every ``clear()``."""
        return self._generation

    @property
    def verification_ttl(self) -> timedelta:
        return self._verification_ttl

    def now(self) -> datetime:
        return self._clock()

    # ── Session verification ─────────────────────────────────────

    def get_verification(self) -> SessionVerification | None:
        """Return the current verification, or None if absent or expired.

        A malformed or future-dated timestamp is treated as absent.
        """
        if self._storage.get_item(MFA_VERIFIED_KEY) != "true":
            return None

        raw = self._storage.get_item(MFA_VERIFIED_AT_KEY)
        if raw is None:
            return None
        try:
            verified_at = _from_millis(int(raw))
        except (TypeError, ValueError, OverflowError, OSError):
            logger.debug("Ignoring malformed %s value", MFA_VERIFIED_AT_KEY)
            return None

        verification = SessionVerification(verified_at=verified_at)
        age = verification.age(self._clock())
        if age < timedelta(0) or age >= self._verification_ttl:
            return None
        return verification

    def has_fresh_verification(self) -> bool:
        return self.get_verification() is not None

    def record_verification(
        self, *, generation: int | None = None
    ) -> SessionVerification | None:
        """Write ``SessionVerification{verified_at: now}``.

        Args:
            generation: Generation read before the verify call. If the store
                was cleared since, the write is discarded.

        Returns:
            The recorded verification, or None when discarded.
        """
        if not self._is_current(generation):
            logger.info("Discarding stale MFA verification write")
            return None

        verified_at = _from_millis(_to_millis(self._clock()))
        self._storage.set_item(MFA_VERIFIED_KEY, "true")
        self._storage.set_item(MFA_VERIFIED_AT_KEY, str(_to_millis(verified_at)))
        self._notify(TrustChange.VERIFICATION_RECORDED)
        return SessionVerification(verified_at=verified_at)

    # ── Policy acceptance flag ───────────────────────────────────

    def is_policy_check_complete(self) -> bool:
        return self._storage.get_item(POLICY_CHECK_COMPLETE_KEY) == "true"

    def mark_policy_check_complete(self, *, generation: int | None = None) -> bool:
        """Cache policy acceptance for the rest of the tab session.

        Returns:
            True if written, False if discarded as stale.
        """
        if not self._is_current(generation):
            logger.info("Discarding stale policy-check write")
            return False

        self._storage.set_item(POLICY_CHECK_COMPLETE_KEY, "true")
        self._notify(TrustChange.POLICY_CHECK_COMPLETED)
        return True

    # ── Invalidation ─────────────────────────────────────────────

    def clear(self) -> None:
        """Remove every trust key. Called synchronously on logout."""
        for key in TRUST_KEYS:
            self._storage.remove_item(key)
        self._generation += 1
        self._notify(TrustChange.CLEARED)

    # ── Publish / subscribe ──────────────────────────────────────

    def subscribe(self, listener: TrustListener) -> Callable[[], None]:
        """Register a listener for trust changes.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: TrustChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                logger.exception("Trust listener failed for %s", change.value)

    def _is_current(self, generation: int | None) -> bool:
        return generation is None or generation == self._generation


__all__: list[str] = [
    "MFA_VERIFIED_KEY",
    "MFA_VERIFIED_AT_KEY",
    "POLICY_CHECK_COMPLETE_KEY",
    "TRUST_KEYS",
    "DEFAULT_VERIFICATION_TTL",
    "Clock",
    "utc_now",
    "TrustChange",
    "TrustListener",
    "SessionVerification",
    "SessionTrustStore",
]
