"""Pydantic models for engine inputs and derived outputs."""

from crm_engine.models.action import (  # noqa: F401
    ActionCategory,
    Channel,
    Impact,
    NextBestAction,
    Priority,
    ReasoningFactor,
)
from crm_engine.models.analytics import (  # noqa: F401
    BehaviorAnalytics,
    CampaignResponse,
    CustomerProfile,
    EngagementMetrics,
    TopUpFrequency,
    TransferAnalytics,
    TransferInsights,
    TransferPersona,
    UtilityAnalytics,
)
from crm_engine.models.audit import (  # noqa: F401
    Actor,
    AuditAction,
    AuditEvent,
    AuditLog,
    AuditResource,
)
from crm_engine.models.compliance import ConsentStats, KYCStats  # noqa: F401
from crm_engine.models.dashboard import DashboardSummary, RuleStats  # noqa: F401
from crm_engine.models.customer import (  # noqa: F401
    AccountStatus,
    AMLFlag,
    Badge,
    CampaignInteraction,
    Customer,
    InteractionType,
    KYCLevel,
    KYCRecord,
    MarketingChannel,
    MarketingConsent,
    PreferredChannel,
    RewardRedemption,
    RiskLevel,
    Segment,
    ServiceInteraction,
    Transaction,
    TransferMethod,
    TransferType,
)
from crm_engine.models.journey import JourneyEvent, JourneyEventType  # noqa: F401
from crm_engine.models.lead import (  # noqa: F401
    LeadContext,
    LeadSource,
    LeadStatus,
    ScoredLead,
    ScoreFactors,
    Temperature,
)
from crm_engine.models.metrics import (  # noqa: F401
    AggregateMetrics,
    CampaignEngagementMetrics,
    ChurnRisk,
    CRMMetricsProfile,
    GrowthMetrics,
    KYCStatus,
    RetentionMetrics,
    ServiceMetrics,
    TrustComplianceMetrics,
)
