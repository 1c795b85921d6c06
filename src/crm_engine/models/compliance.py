"""Population compliance statistics."""

from typing import Dict

from pydantic import BaseModel, Field


class KYCStats(BaseModel):
    enhanced: int = 0
    standard: int = 0
    basic: int = 0
    expired: int = 0
    expiring_soon: int = 0
    with_aml_flags: int = 0
    high_risk: int = 0
    medium_risk: int = 0


class ConsentStats(BaseModel):
    total: int = 0
    eligible: int = Field(default=0, description="Customers with live marketing consent")
    ineligible: int = 0
    consent_rate: int = Field(default=0, ge=0, le=100)
    by_channel: Dict[str, int] = Field(default_factory=dict)
    expired_consent: int = 0
