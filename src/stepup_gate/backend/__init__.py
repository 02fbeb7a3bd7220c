"""HTTP adapters for the MFA and policy backends."""

from __future__ import annotations

from .rest import (
    BackendConfig,
    RestBackendClient,
    RestMfaService,
    RestPolicyAcceptanceService,
    TokenProvider,
)

__all__: list[str] = [
    "BackendConfig",
    "TokenProvider",
    "RestBackendClient",
    "RestMfaService",
    "RestPolicyAcceptanceService",
]
