"""CRM health metric models (service, engagement, growth, retention, trust)."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

Percent = Annotated[int, Field(ge=0, le=100)]


class ChurnRisk(str, Enum):
    """Churn tiers, ordered from least to most severe."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return list(ChurnRisk).index(self)


class KYCStatus(str, Enum):
    COMPLETE = "Complete"
    PARTIAL = "Partial"
    PENDING = "Pending"
    EXPIRED = "Expired"


class ServiceMetrics(BaseModel):
    average_response_time: float = Field(description="Hours")
    average_resolution_time: float = Field(description="Hours")
    sla_hit_rate: Percent
    repeat_complaint_rate: Percent
    total_tickets: int = Field(ge=0)
    resolved_tickets: int = Field(ge=0)
    pending_tickets: int = Field(ge=0)
    satisfaction_score: float = Field(ge=0, le=5, description="CSAT 0-5")


class CampaignEngagementMetrics(BaseModel):
    opt_in_rate: Percent
    email_open_rate: Percent
    click_rate: Percent
    conversion_per_journey: float = Field(ge=0)
    total_campaigns_sent: int = Field(ge=0)
    total_opens: int = Field(ge=0)
    total_clicks: int = Field(ge=0)
    total_conversions: int = Field(ge=0)
    average_journey_length: int = Field(ge=0, description="Days")


class GrowthMetrics(BaseModel):
    cross_sell_conversion: Percent
    upsell_conversion: Percent
    product_per_customer: int = Field(ge=0)
    new_product_adoption: int = Field(ge=0)
    revenue_per_customer: float = Field(ge=0)
    lifetime_value: float = Field(ge=0)
    growth_potential_score: Percent


class RetentionMetrics(BaseModel):
    churn_risk: ChurnRisk
    churn_probability: Percent
    days_since_last_activity: int = Field(ge=0)
    reactivation_eligible: bool
    reactivation_attempts: int = Field(ge=0)
    reactivation_success: bool = False
    retention_score: Percent
    predicted_churn_date: Optional[date] = None


class TrustComplianceMetrics(BaseModel):
    consent_coverage: Percent
    marketing_consent_status: bool
    data_quality_score: Percent
    profile_completeness: Percent
    audit_trail_completeness: Percent
    last_consent_update: Optional[str] = None
    kyc_status: KYCStatus
    kyc_level: Optional[str] = None
    kyc_risk_level: Optional[str] = None
    kyc_expired: bool = False
    open_aml_flags: int = Field(default=0, ge=0)
    data_privacy_compliant: bool
    missing_fields: List[str] = Field(default_factory=list)


class CRMMetricsProfile(BaseModel):
    """All five metric groups for one customer."""

    customer_id: str
    service_metrics: ServiceMetrics
    campaign_engagement: CampaignEngagementMetrics
    growth_metrics: GrowthMetrics
    retention_metrics: RetentionMetrics
    trust_compliance: TrustComplianceMetrics


class AggregateMetrics(BaseModel):
    """Population roll-up of per-customer CRM metrics."""

    customer_count: int = 0
    avg_sla_hit_rate: int = 0
    avg_response_time: float = 0
    avg_churn_probability: int = 0
    avg_data_quality: int = 0
    avg_click_rate: int = 0
    avg_profile_completeness: int = 0
    total_at_risk: int = 0
    total_opted_in: int = 0
