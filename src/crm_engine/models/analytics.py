"""Customer 360 models derived from a single customer snapshot."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from crm_engine.models.customer import RiskLevel


class BehaviorAnalytics(BaseModel):
    """Summary statistics over a transaction history."""

    average_transaction_amount: float = 0
    total_transaction_volume: float = 0
    dominant_category: str = "N/A"
    transaction_frequency: float = Field(default=0, description="Transactions per month")
    last_transaction_date: str = "N/A"


class EngagementMetrics(BaseModel):
    consistency_score: int = Field(ge=0, le=100)
    badges_earned: int = 0
    total_badges: int = 0
    badge_completion_rate: int = Field(default=0, ge=0, le=100)
    days_active: int = 0
    last_active_date: str = "N/A"


class UtilityAnalytics(BaseModel):
    """Recurring bill and utility payment dependency."""

    total_utility_transactions: int = 0
    total_utility_spend: float = 0
    unique_providers: List[str] = Field(default_factory=list)
    recurring_bill_count: int = 0
    utility_spend_percentage: int = Field(default=0, ge=0, le=100)
    dependency_score: int = Field(default=0, ge=0, le=100)
    is_primary_banking_user: bool = False
    persona: str = "Non-Utility User"


class TransferPersona(str, Enum):
    LOYAL = "Loyal Ecosystem User"
    MULTI_BANK = "Multi-Bank User"
    BALANCED = "Balanced User"
    NO_ACTIVITY = "No Transfer Activity"


class TopUpFrequency(str, Enum):
    FREQUENT = "Frequent"
    OCCASIONAL = "Occasional"
    RARE = "Rare"


class TransferInsights(BaseModel):
    loyalty_score: float = Field(default=50, ge=0, le=100, description="Share of intra-bank transfers")
    cross_bank_exposure: RiskLevel = RiskLevel.LOW
    top_up_frequency: TopUpFrequency = TopUpFrequency.RARE
    churn_risk: RiskLevel = RiskLevel.LOW


class TransferAnalytics(BaseModel):
    """Where a customer moves money: inside the bank or out to competitors."""

    intra_bank_count: int = 0
    inter_bank_count: int = 0
    top_up_count: int = 0
    transfer_out_count: int = 0
    average_top_up: float = 0
    average_transfer_out: float = 0
    persona: TransferPersona = TransferPersona.NO_ACTIVITY
    insights: TransferInsights = Field(default_factory=TransferInsights)
    recommendations: List[str] = Field(default_factory=list)


class CampaignResponse(BaseModel):
    response_rate: int = Field(default=0, ge=0, le=100)
    total_received: int = 0
    total_conversions: int = 0


class CustomerProfile(BaseModel):
    """Customer 360 record. Recomputed on every call."""

    customer_id: str
    behavior: BehaviorAnalytics
    engagement: EngagementMetrics
    campaign_response: CampaignResponse
    utility: UtilityAnalytics
    transfers: TransferAnalytics
    recommended_next_action: str
