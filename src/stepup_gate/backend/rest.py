"""REST adapters for the MFA and policy backends.

Endpoints:

- ``GET  /api/mfa/status``                 -> ``{enabled, verified}``
- ``POST /api/mfa/setup/totp``             -> ``{secret, qrCode}``
- ``POST /api/mfa/verify/totp {code}``     -> ``{backupCodes}``
- ``POST /api/mfa/verify {code, useBackupCode}``
- ``GET  /api/policies/acceptance-status`` -> ``{needsPolicyAcceptance}``
- ``GET  /api/policies/public/latest``     -> ``{policies}`` (no auth)
- ``POST /api/policies/accept {policyIds}``

Error responses carry ``{"error": "<message>"}``; that message is what the
user sees.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..exceptions import (
    BackendError,
    MfaInvalidError,
    MfaSetupError,
    PolicyAcceptanceError,
)
from ..mfa.models import BackupCodeSet, EnrollmentArtifact, MfaStatus
from ..policy.models import PolicyAcceptanceStatus, PublishedPolicy
from ..ports import IMfaService, IPolicyAcceptanceService

if TYPE_CHECKING:
    from ..identity import Identity

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]


@dataclass(frozen=True)
class BackendConfig:
    """Backend connection settings.

    Attributes:
        base_url: API origin, e.g. ``https://api.example.com``.
        timeout: Request timeout in seconds. None keeps the httpx default.
        user_agent: Value of the ``User-Agent`` header.
    """

    base_url: str
    timeout: float | None = None
    user_agent: str = "stepup-gate/0.1.0"


class RestBackendClient:
    """Thin JSON client over ``httpx.AsyncClient``.

    Example:
        ```python
        async with RestBackendClient(
            BackendConfig(base_url="https://api.example.com"),
            token_provider=session.get_token,
        ) as client:
            mfa = RestMfaService(client)
            status = await mfa.get_status(identity)
        ```
    """

    def __init__(
        self,
        config: BackendConfig,
        *,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._token_provider = token_provider

        kwargs: dict[str, Any] = {
            "base_url": config.base_url,
            "headers": {"User-Agent": config.user_agent},
        }
        if config.timeout is not None:
            kwargs["timeout"] = config.timeout
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    async def __aenter__(self) -> RestBackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
        default_error: str = "Request failed",
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON object.

        Raises:
            BackendError: Transport failure, non-2xx status, or a body that
                is not a JSON object.
        """
        headers: dict[str, str] = {}
        if authenticated and self._token_provider is not None:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                method, path, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise BackendError(default_error) from e

        if response.is_error:
            message = _error_message(response) or default_error
            logger.error("%s %s returned HTTP %s", method, path, response.status_code)
            raise BackendError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(default_error, status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise BackendError(default_error, status_code=response.status_code)
        return data


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def _is_client_error(error: BackendError) -> bool:
    return error.status_code is not None and 400 <= error.status_code < 500


def _parse(model: Any, data: dict[str, Any], default_error: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise BackendError(default_error) from e


class RestMfaService(IMfaService):
    """MFA backend over HTTP."""

    def __init__(self, client: RestBackendClient) -> None:
        self._client = client

    async def get_status(self, identity: Identity) -> MfaStatus:
        data = await self._client.request(
            "GET", "/api/mfa/status", default_error="Failed to get MFA status"
        )
        status: MfaStatus = _parse(MfaStatus, data, "Failed to get MFA status")
        return status

    async def setup(self, identity: Identity) -> EnrollmentArtifact:
        try:
            data = await self._client.request(
                "POST", "/api/mfa/setup/totp", default_error="Failed to setup TOTP"
            )
        except BackendError as e:
            if _is_client_error(e):
                raise MfaSetupError(str(e)) from e
            raise
        artifact: EnrollmentArtifact = _parse(
            EnrollmentArtifact, data, "Failed to setup TOTP"
        )
        return artifact

    async def verify_and_enable(self, identity: Identity, code: str) -> BackupCodeSet:
        try:
            data = await self._client.request(
                "POST",
                "/api/mfa/verify/totp",
                json={"code": code},
                default_error="Failed to verify TOTP",
            )
        except BackendError as e:
            if _is_client_error(e):
                raise MfaInvalidError(str(e)) from e
            raise
        codes: BackupCodeSet = _parse(BackupCodeSet, data, "Failed to verify TOTP")
        return codes

    async def verify(
        self, identity: Identity, code: str, *, is_backup_code: bool = False
    ) -> None:
        try:
            await self._client.request(
                "POST",
                "/api/mfa/verify",
                json={"code": code, "useBackupCode": is_backup_code},
                default_error="Failed to verify MFA",
            )
        except BackendError as e:
            if _is_client_error(e):
                raise MfaInvalidError(str(e)) from e
            raise


class RestPolicyAcceptanceService(IPolicyAcceptanceService):
    """Policy acceptance backend over HTTP."""

    def __init__(self, client: RestBackendClient) -> None:
        self._client = client

    async def get_acceptance_status(
        self, identity: Identity
    ) -> PolicyAcceptanceStatus:
        data = await self._client.request(
            "GET",
            "/api/policies/acceptance-status",
            default_error="Failed to get acceptance status",
        )
        status: PolicyAcceptanceStatus = _parse(
            PolicyAcceptanceStatus, data, "Failed to get acceptance status"
        )
        return status

    async def list_latest_policies(self) -> list[PublishedPolicy]:
        data = await self._client.request(
            "GET",
            "/api/policies/public/latest",
            authenticated=False,
            default_error="Failed to get published policies",
        )
        raw = data.get("policies") or []
        if not isinstance(raw, list):
            raise BackendError("Failed to get published policies")
        return [
            _parse(PublishedPolicy, item, "Failed to get published policies")
            for item in raw
        ]

    async def accept(self, identity: Identity, policy_ids: list[str]) -> None:
        try:
            await self._client.request(
                "POST",
                "/api/policies/accept",
                json={"policyIds": list(policy_ids)},
                default_error="Failed to accept policies",
            )
        except BackendError as e:
            raise PolicyAcceptanceError(str(e)) from e


__all__: list[str] = [
    "BackendConfig",
    "TokenProvider",
    "RestBackendClient",
    "RestMfaService",
    "RestPolicyAcceptanceService",
]
