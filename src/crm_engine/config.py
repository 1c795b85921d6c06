"""
Engine configuration.

Every threshold, weight and bonus table the scorers use lives here with a
documented default, so tenants can tune them and tests can pin boundaries.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple

from crm_engine.models.action import Channel
from crm_engine.models.customer import Segment
from crm_engine.models.metrics import ChurnRisk
from crm_engine.utils.error_handling import ConfigurationError


@dataclass
class EngagementConfig:
    """Gamification consistency score shares (sum to 100)."""

    max_level: int = 50
    level_share: float = 40
    badge_share: float = 30
    xp_share: float = 30
    days_per_level: int = 3


@dataclass
class ServiceConfig:
    sla_base: int = 70
    repeat_complaint_base: int = 15
    segment_bonus: Dict[Segment, int] = field(
        default_factory=lambda: {
            Segment.CHAMPIONS: 20,
            Segment.LOYAL: 10,
            Segment.POTENTIAL: 5,
        }
    )


@dataclass
class GrowthConfig:
    # Champions/Loyal > Potential > others
    conversion_base: Dict[Segment, int] = field(
        default_factory=lambda: {
            Segment.CHAMPIONS: 25,
            Segment.LOYAL: 25,
            Segment.POTENTIAL: 15,
        }
    )
    default_conversion_base: int = 8
    potential_base: Dict[Segment, int] = field(
        default_factory=lambda: {
            Segment.CHAMPIONS: 60,
            Segment.LOYAL: 60,
            Segment.POTENTIAL: 45,
        }
    )
    default_potential_base: int = 25
    lifetime_months: Dict[Segment, int] = field(
        default_factory=lambda: {
            Segment.CHAMPIONS: 60,
            Segment.LOYAL: 60,
            Segment.POTENTIAL: 36,
        }
    )
    default_lifetime_months: int = 24
    established_segments: FrozenSet[Segment] = frozenset({Segment.CHAMPIONS, Segment.LOYAL})
    margin: float = 0.02
    max_products: int = 5


@dataclass
class RetentionConfig:
    """Churn tiers: segment base tier, escalated by inactivity."""

    base_tier: Dict[Segment, ChurnRisk] = field(
        default_factory=lambda: {
            Segment.CHAMPIONS: ChurnRisk.LOW,
            Segment.LOYAL: ChurnRisk.LOW,
            Segment.POTENTIAL: ChurnRisk.LOW,
            Segment.AT_RISK: ChurnRisk.HIGH,
            Segment.HIBERNATING: ChurnRisk.CRITICAL,
        }
    )
    # (days inactive strictly above, minimum tier)
    escalation_days: Tuple[Tuple[int, ChurnRisk], ...] = (
        (30, ChurnRisk.MEDIUM),
        (90, ChurnRisk.HIGH),
        (180, ChurnRisk.CRITICAL),
    )
    # [low, high) probability band per tier; bands must not overlap
    probability_bands: Dict[ChurnRisk, Tuple[int, int]] = field(
        default_factory=lambda: {
            ChurnRisk.LOW: (0, 15),
            ChurnRisk.MEDIUM: (15, 40),
            ChurnRisk.HIGH: (40, 70),
            ChurnRisk.CRITICAL: (70, 100),
        }
    )
    saturation_days: int = 365
    unknown_activity_days: int = 365
    reactivation_segments: FrozenSet[Segment] = frozenset({Segment.AT_RISK, Segment.HIBERNATING})
    churn_horizon_days: int = 90


@dataclass
class TrustConfig:
    required_fields: Tuple[str, ...] = (
        "name",
        "email",
        "phone",
        "age",
        "occupation",
        "location",
        "gender",
    )
    kyc_complete: int = 90
    kyc_partial: int = 60
    kyc_pending: int = 30
    privacy_compliant_at: int = 60
    activity_cap: int = 30
    activity_per_transaction: int = 2
    completeness_weight: float = 0.4
    consent_score_opted_in: int = 20
    consent_score_opted_out: int = 10


@dataclass
class TransferConfig:
    """Transfer persona, exposure and churn cutoffs. Counts are strict lower bounds."""

    loyal_above: float = 70
    multi_bank_below: float = 40
    exposure_high_above: int = 10
    exposure_medium_above: int = 5
    frequent_top_ups_above: int = 4
    occasional_top_ups_above: int = 2
    high_churn_loyalty_below: float = 30
    medium_churn_loyalty_below: float = 50
    ecosystem_transfers_above: int = 5


@dataclass
class LeadScoringConfig:
    """Additive sub-score bands (sum <= 100) and temperature cutoffs."""

    balance_max: int = 35
    engagement_max: int = 35
    recency_max: int = 30
    balance_ceiling: float = 100_000_000
    recency_window_days: int = 90
    consistency_weight: float = 0.6
    interest_weight: float = 0.4
    hot_cutoff: int = 70
    warm_cutoff: int = 40


@dataclass
class NBAConfig:
    default_max_actions: int = 3
    # keep one UPSELL or CROSS_SELL action in the top N when any survives gating
    reserve_revenue_slot: bool = True
    marketing_channels: FrozenSet[Channel] = frozenset(
        {Channel.EMAIL, Channel.SMS, Channel.PUSH, Channel.WHATSAPP}
    )
    priority_balance: float = 100_000_000
    deposit_balance: float = 50_000_000
    insurance_balance: float = 20_000_000
    home_loan_balance: float = 50_000_000
    lifestyle_spend: float = 2_000_000
    idle_transactions_90d: int = 5
    low_activity_transactions_90d: int = 10
    onboarding_days: int = 90
    onboarding_transactions: int = 5
    repeat_complaint_alert: int = 30
    pending_ticket_alert: int = 2


@dataclass
class CacheConfig:
    ttl_seconds: int = 300
    max_size: int = 256


@dataclass
class EngineSettings:
    """Root configuration injected into every component."""

    engagement: EngagementConfig = field(default_factory=EngagementConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    growth: GrowthConfig = field(default_factory=GrowthConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    trust: TrustConfig = field(default_factory=TrustConfig)
    transfers: TransferConfig = field(default_factory=TransferConfig)
    leads: LeadScoringConfig = field(default_factory=LeadScoringConfig)
    nba: NBAConfig = field(default_factory=NBAConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    estimator_seed: int = 0

    def validate(self) -> "EngineSettings":
        """Reject settings the scorers cannot honour."""
        leads = self.leads
        if not 0 <= leads.warm_cutoff < leads.hot_cutoff <= 100:
            raise ConfigurationError("lead cutoffs must satisfy 0 <= warm < hot <= 100")
        if min(leads.balance_max, leads.engagement_max, leads.recency_max) < 0:
            raise ConfigurationError("lead sub-score maxima must be non-negative")
        if leads.balance_max + leads.engagement_max + leads.recency_max > 100:
            raise ConfigurationError("lead sub-score maxima must sum to at most 100")

        eng = self.engagement
        if eng.max_level <= 0:
            raise ConfigurationError("engagement.max_level must be positive")
        if eng.level_share + eng.badge_share + eng.xp_share > 100:
            raise ConfigurationError("engagement shares must sum to at most 100")

        previous_high = 0
        for tier in ChurnRisk:
            if tier not in self.retention.probability_bands:
                raise ConfigurationError(f"missing churn band for {tier.value}")
            low, high = self.retention.probability_bands[tier]
            if low < previous_high or high < low or high > 100:
                raise ConfigurationError("churn probability bands must be ordered and non-overlapping")
            previous_high = high

        trust = self.trust
        if not 0 <= trust.kyc_pending <= trust.kyc_partial <= trust.kyc_complete <= 100:
            raise ConfigurationError("KYC thresholds must be ordered within [0, 100]")
        if not trust.required_fields:
            raise ConfigurationError("trust.required_fields must not be empty")

        transfers = self.transfers
        if not 0 <= transfers.multi_bank_below <= transfers.loyal_above <= 100:
            raise ConfigurationError("transfer persona cutoffs must satisfy 0 <= multi_bank <= loyal <= 100")
        if transfers.exposure_medium_above > transfers.exposure_high_above:
            raise ConfigurationError("transfer exposure cutoffs must be ordered")

        if self.nba.default_max_actions < 0:
            raise ConfigurationError("nba.default_max_actions must be non-negative")
        return self

    @classmethod
    def from_environment(cls) -> "EngineSettings":
        """Load settings with environment overrides."""
        settings = cls()
        settings.leads.hot_cutoff = int(os.environ.get("CRM_HOT_CUTOFF", settings.leads.hot_cutoff))
        settings.leads.warm_cutoff = int(os.environ.get("CRM_WARM_CUTOFF", settings.leads.warm_cutoff))
        settings.engagement.max_level = int(
            os.environ.get("CRM_MAX_LEVEL", settings.engagement.max_level)
        )
        settings.nba.default_max_actions = int(
            os.environ.get("CRM_DEFAULT_MAX_ACTIONS", settings.nba.default_max_actions)
        )
        settings.cache.ttl_seconds = int(
            os.environ.get("CRM_CACHE_TTL_SECONDS", settings.cache.ttl_seconds)
        )
        settings.cache.max_size = int(os.environ.get("CRM_CACHE_MAX_SIZE", settings.cache.max_size))
        settings.estimator_seed = int(os.environ.get("CRM_ESTIMATOR_SEED", settings.estimator_seed))
        return settings.validate()
