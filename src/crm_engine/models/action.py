"""Next Best Action models."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ActionCategory(str, Enum):
    UPSELL = "UPSELL"
    CROSS_SELL = "CROSS_SELL"
    RETENTION = "RETENTION"
    ACTIVATION = "ACTIVATION"
    SERVICE = "SERVICE"


class Priority(str, Enum):
    """Action priority levels, most urgent first."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class Impact(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class Channel(str, Enum):
    """Execution channels an action can recommend."""

    PHONE_CALL = "Phone Call"
    EMAIL = "Email"
    SMS = "SMS"
    WHATSAPP = "WhatsApp"
    PUSH = "Push"
    BRANCH_VISIT = "Branch Visit"
    MOBILE_APP = "Mobile App"


class ReasoningFactor(BaseModel):
    """One reader-facing reason behind a recommendation."""

    label: str
    icon: str = ""
    impact: Impact = Impact.POSITIVE
    weight: int = Field(ge=0, le=100)


class NextBestAction(BaseModel):
    """A ranked, explainable recommendation for one customer."""

    id: str
    rule_id: str
    title: str
    description: str = ""
    category: ActionCategory
    priority: Priority
    confidence: int = Field(ge=0, le=100)
    expected_revenue: float = Field(ge=0, description="Annualized, account currency")
    short_reason: str
    long_reason: str = ""
    reasoning_factors: List[ReasoningFactor] = Field(default_factory=list)
    channels: List[Channel] = Field(default_factory=list)
    historical_conversion_rate: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("reasoning_factors")
    @classmethod
    def validate_factor_weights(cls, value: List[ReasoningFactor]) -> List[ReasoningFactor]:
        """Weights explaining one action may not exceed 100 in total."""
        if sum(f.weight for f in value) > 100:
            raise ValueError("reasoning factor weights must sum to at most 100")
        return value
