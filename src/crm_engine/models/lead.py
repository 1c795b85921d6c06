"""Lead scoring models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from crm_engine.models.action import NextBestAction


class Temperature(str, Enum):
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"


class LeadSource(str, Enum):
    REFERRAL = "REFERRAL"
    CAMPAIGN = "CAMPAIGN"
    INBOUND = "INBOUND"
    COLD = "COLD"


class LeadStatus(str, Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    CONVERTED = "CONVERTED"
    DROPPED = "DROPPED"


class LeadContext(BaseModel):
    """Sales context for a customer being worked as a lead."""

    id: str
    customer_id: str
    source: LeadSource = LeadSource.INBOUND
    interest_level: int = Field(default=5, ge=1, le=10)
    last_contact_date: Optional[datetime] = None
    status: LeadStatus = LeadStatus.NEW
    notes: Optional[str] = None


class ScoreFactors(BaseModel):
    balance: int = Field(ge=0, le=100)
    engagement: int = Field(ge=0, le=100)
    recency: int = Field(ge=0, le=100)


class ScoredLead(BaseModel):
    lead: LeadContext
    score: int = Field(ge=0, le=100)
    temperature: Temperature
    score_factors: ScoreFactors
    next_best_action: Optional[NextBestAction] = None
