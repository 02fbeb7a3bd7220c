"""Identity value object for the step-up gate.

An Identity is the authenticated user as seen by the gate. Its presence means
the primary login already succeeded; the gate only consumes ``role`` and
``organization_id`` from it.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

SUPER_ADMIN_ROLE = "SUPER_ADMIN"


class Identity(BaseModel):
    """Immutable reference to the signed-in user.

    Attributes:
        user_id: Unique identifier for the user (subject claim).
        username: Human-readable username or email, if known.
        role: Application role (e.g. ``"SUPER_ADMIN"``, ``"ADMIN"``, ``"MEMBER"``).
        organization_id: Organization the user belongs to. None while the
            user is still onboarding.

    Example:
        ```python
        identity = Identity.from_claims({
            "sub": "user_2abc",
            "public_metadata": {"role": "MEMBER", "companyId": "cmp_1"},
        })

        if identity.is_policy_exempt():
            ...
        ```
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str | None = None
    role: str | None = None
    organization_id: str | None = None

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Identity:
        """Create an Identity from session/JWT claims.

        Role and organization are read from ``public_metadata`` (or
        ``publicMetadata``) first, then from top-level claims.

        Args:
            claims: Claims dictionary from the session token.

        Returns:
            Identity populated from the claims.
        """
        metadata = claims.get("public_metadata") or claims.get("publicMetadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}

        user_id = claims.get("sub") or claims.get("user_id") or ""
        username = (
            claims.get("preferred_username")
            or claims.get("email")
            or claims.get("username")
        )
        role = metadata.get("role") or claims.get("role")
        organization_id = (
            metadata.get("companyId")
            or metadata.get("organization_id")
            or claims.get("organization_id")
            or claims.get("org_id")
        )

        return cls(
            user_id=str(user_id),
            username=str(username) if username else None,
            role=str(role) if role else None,
            organization_id=str(organization_id) if organization_id else None,
        )

    def is_policy_exempt(
        self, exempt_roles: frozenset[str] = frozenset({SUPER_ADMIN_ROLE})
    ) -> bool:
        """Whether policy acceptance is skipped for this identity.

        Super admins are exempt, and so is anyone without an organization
        (onboarding has not created one yet).
        """
        return (self.role in exempt_roles) or not self.organization_id

    def is_same_user(self, other: Identity | None) -> bool:
        return other is not None and other.user_id == self.user_id


__all__: list[str] = ["Identity", "SUPER_ADMIN_ROLE"]
