"""Policy acceptance data exchanged with the policy service."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PolicyType(str, Enum):
    TERMS_OF_SERVICE = "TERMS_OF_SERVICE"
    PRIVACY_POLICY = "PRIVACY_POLICY"
    DATA_PROCESSING_AGREEMENT = "DATA_PROCESSING_AGREEMENT"
    SMS_CONSENT = "SMS_CONSENT"
    COOKIE_PREFERENCES = "COOKIE_PREFERENCES"
    SUPPORT_ACCESS = "SUPPORT_ACCESS"
    AI_FAIR_USE_POLICY = "AI_FAIR_USE_POLICY"
    GDPR_DATA_PROCESSING_ADDENDUM = "GDPR_DATA_PROCESSING_ADDENDUM"
    COMPLAINTS_POLICY = "COMPLAINTS_POLICY"


class PolicyAcceptanceStatus(BaseModel):
    """Whether the identity still has outstanding policies to accept."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    needs_acceptance: bool = Field(default=False, alias="needsPolicyAcceptance")


class PublishedPolicy(BaseModel):
    """Latest published version of a policy.

    ``type`` is kept as a string so that policy types added on the backend
    do not break parsing.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    type: str
    title: str | None = None
    version: str | int | None = None
    url: str | None = None
    published_at: datetime | None = Field(default=None, alias="publishedAt")


__all__: list[str] = ["PolicyType", "PolicyAcceptanceStatus", "PublishedPolicy"]
