"""Step-up authentication gate.

Decides, for every authenticated tab session, whether the signed-in user may
reach protected content, and drives them through mandatory TOTP enrollment,
per-session step-up verification and policy acceptance first.

Usage:
    ```python
    from stepup_gate import (
        AuthorizationGate,
        GateConfig,
        GateView,
        Identity,
        InMemoryTabStorage,
        SessionTrustStore,
    )
    from stepup_gate.backend import (
        BackendConfig,
        RestBackendClient,
        RestMfaService,
        RestPolicyAcceptanceService,
    )

    config = GateConfig()
    client = RestBackendClient(
        BackendConfig(base_url="https://api.example.com"),
        token_provider=get_token,
    )
    gate = AuthorizationGate(
        RestMfaService(client),
        RestPolicyAcceptanceService(client),
        SessionTrustStore.from_config(InMemoryTabStorage(), config),
        router,
        config=config,
    )

    gate.mount(Identity.from_claims(claims))
    await gate.settle()
    if gate.view is GateView.ENROLLMENT:
        wizard = gate.open_enrollment()
    ```
"""

from __future__ import annotations

from .config import GateConfig
from .exceptions import (
    ActionDisabledError,
    BackendError,
    BackupCodesNotAcknowledgedError,
    GateError,
    InvalidCodeFormatError,
    MfaError,
    MfaInvalidError,
    MfaSetupError,
    PolicyAcceptanceError,
    PolicyError,
)
from .gate import (
    Allowed,
    AuthorizationGate,
    AwaitingPolicy,
    GatePhase,
    GateState,
    GateView,
    Loading,
    NeedsEnrollment,
    NeedsVerification,
)
from .identity import SUPER_ADMIN_ROLE, Identity
from .mfa import (
    BackupCodeDownload,
    BackupCodeSet,
    EnrollmentArtifact,
    EnrollmentStage,
    EnrollmentWizard,
    MfaStatus,
    StepUpChallenge,
    VerificationMode,
)
from .outcome import CallKind, Failed, FailurePolicy, Ok, Outcome, attempt
from .policy import PolicyAcceptanceForm, PolicyCheck, PublishedPolicy
from .ports import (
    IAuthAuditStore,
    IMfaService,
    INavigator,
    InMemoryNavigator,
    IPolicyAcceptanceService,
)
from .storage import InMemoryTabStorage, ITabStorage
from .trust import SessionTrustStore, SessionVerification, TrustChange

__version__ = "0.1.0"

__all__: list[str] = [
    # Gate
    "AuthorizationGate",
    "GateConfig",
    "GatePhase",
    "GateView",
    "GateState",
    "Loading",
    "NeedsEnrollment",
    "NeedsVerification",
    "AwaitingPolicy",
    "Allowed",
    # Identity
    "Identity",
    "SUPER_ADMIN_ROLE",
    # Trust
    "SessionTrustStore",
    "SessionVerification",
    "TrustChange",
    "ITabStorage",
    "InMemoryTabStorage",
    # MFA
    "MfaStatus",
    "EnrollmentArtifact",
    "BackupCodeSet",
    "BackupCodeDownload",
    "VerificationMode",
    "StepUpChallenge",
    "EnrollmentWizard",
    "EnrollmentStage",
    # Policy
    "PolicyCheck",
    "PolicyAcceptanceForm",
    "PublishedPolicy",
    # Outcome
    "CallKind",
    "FailurePolicy",
    "Ok",
    "Failed",
    "Outcome",
    "attempt",
    # Ports
    "IMfaService",
    "IPolicyAcceptanceService",
    "INavigator",
    "InMemoryNavigator",
    "IAuthAuditStore",
    # Exceptions
    "GateError",
    "BackendError",
    "MfaError",
    "MfaInvalidError",
    "InvalidCodeFormatError",
    "MfaSetupError",
    "PolicyError",
    "PolicyAcceptanceError",
    "ActionDisabledError",
    "BackupCodesNotAcknowledgedError",
]
