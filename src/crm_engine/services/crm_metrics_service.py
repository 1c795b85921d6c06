"""
CRM health metrics.

Builds the five metric groups (service, campaign engagement, growth,
retention, trust/compliance) for a customer and rolls a population of
per-customer profiles into aggregate dashboard numbers. Aggregates are always
computed from the per-customer profiles, never recomputed independently.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from statistics import mean
from typing import List, Optional, Sequence

from crm_engine.config import EngineSettings
from crm_engine.models.customer import Customer, InteractionType, KYCLevel
from crm_engine.models.metrics import (
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
from crm_engine.services.consent import is_opted_in
from crm_engine.utils.estimator import Clock, Estimator, SeededEstimator, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc, clamp, clamp_pct, days_between, safe_ratio

logger = get_logger(__name__)

TICKET_TYPES = frozenset({"ticket", "call"})
AT_RISK_TIERS = frozenset({ChurnRisk.HIGH, ChurnRisk.CRITICAL})


class CRMHealthAggregator:
    """Per-customer CRM metric profiles and population roll-ups."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        estimator: Optional[Estimator] = None,
        clock: Clock = utc_now,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.estimator = estimator or SeededEstimator(self.settings.estimator_seed)
        self.clock = clock

    def build_profile(self, customer: Customer) -> CRMMetricsProfile:
        now = self.clock()
        profile = CRMMetricsProfile(
            customer_id=customer.id,
            service_metrics=self.service_metrics(customer),
            campaign_engagement=self.campaign_engagement(customer),
            growth_metrics=self.growth_metrics(customer),
            retention_metrics=self.retention_metrics(customer, now),
            trust_compliance=self.trust_compliance(customer, now),
        )
        logger.debug(
            "CRM profile built",
            extra={
                "customer_id": customer.id,
                "churn_risk": profile.retention_metrics.churn_risk.value,
            },
        )
        return profile

    # ----------------------------------------------------------------- service

    def service_metrics(self, customer: Customer) -> ServiceMetrics:
        cfg = self.settings.service
        est = self.estimator
        tickets = [i for i in customer.interactions if i.type in TICKET_TYPES]

        if tickets:
            total = len(tickets)
            resolved = sum(1 for t in tickets if t.status == "resolved")
        else:
            total = est.randint(customer.id, "service.tickets", 1, 5)
            resolved = int(total * est.uniform(customer.id, "service.resolved", 0.70, 0.95))

        bonus = cfg.segment_bonus.get(customer.segment, 0)
        sla = cfg.sla_base + bonus + est.randint(customer.id, "service.sla", 0, 14)
        repeat = cfg.repeat_complaint_base - bonus + est.randint(customer.id, "service.repeat", 0, 9)

        return ServiceMetrics(
            average_response_time=round(est.uniform(customer.id, "service.response", 2, 6), 1),
            average_resolution_time=round(est.uniform(customer.id, "service.resolution", 12, 36), 1),
            sla_hit_rate=clamp_pct(sla),
            repeat_complaint_rate=clamp_pct(repeat),
            total_tickets=total,
            resolved_tickets=resolved,
            pending_tickets=total - resolved,
            satisfaction_score=round(clamp(est.uniform(customer.id, "service.csat", 3.5, 5.0), 0, 5), 1),
        )

    # --------------------------------------------------------------- campaigns

    def campaign_engagement(self, customer: Customer) -> CampaignEngagementMetrics:
        est = self.estimator
        history = customer.campaign_history
        opted_in = is_opted_in(customer.marketing_consent)
        journey_days = est.randint(customer.id, "campaign.journey", 7, 27)

        if history:
            total = len(history)
            kinds = [c.interaction_type for c in history]
            clicks = kinds.count(InteractionType.CLICK) + kinds.count(InteractionType.CONVERT)
            opens = clicks + kinds.count(InteractionType.VIEW)
            conversions = kinds.count(InteractionType.CONVERT)
            return CampaignEngagementMetrics(
                opt_in_rate=100 if opted_in else 0,
                email_open_rate=clamp_pct(safe_ratio(opens, total) * 100),
                click_rate=clamp_pct(safe_ratio(clicks, total) * 100),
                conversion_per_journey=round(conversions / max(1.0, total / 5), 2),
                total_campaigns_sent=total,
                total_opens=opens,
                total_clicks=clicks,
                total_conversions=conversions,
                average_journey_length=journey_days,
            )

        if not opted_in:
            # nothing is sent to a customer without consent
            return CampaignEngagementMetrics(
                opt_in_rate=0,
                email_open_rate=0,
                click_rate=0,
                conversion_per_journey=0,
                total_campaigns_sent=0,
                total_opens=0,
                total_clicks=0,
                total_conversions=0,
                average_journey_length=0,
            )

        total = est.randint(customer.id, "campaign.sent", 5, 24)
        open_rate = est.randint(customer.id, "campaign.open_rate", 35, 59)
        click_rate = est.randint(customer.id, "campaign.click_rate", 8, 19)
        return CampaignEngagementMetrics(
            opt_in_rate=100,
            email_open_rate=open_rate,
            click_rate=click_rate,
            conversion_per_journey=round(est.uniform(customer.id, "campaign.cpj", 0.5, 2.0), 2),
            total_campaigns_sent=total,
            total_opens=int(total * open_rate / 100),
            total_clicks=int(total * click_rate / 100),
            total_conversions=int(total * 0.05),
            average_journey_length=journey_days,
        )

    # ------------------------------------------------------------------ growth

    def growth_metrics(self, customer: Customer) -> GrowthMetrics:
        cfg = self.settings.growth
        est = self.estimator
        segment = customer.segment

        base = cfg.conversion_base.get(segment, cfg.default_conversion_base)
        potential = cfg.potential_base.get(segment, cfg.default_potential_base)
        lifetime = cfg.lifetime_months.get(segment, cfg.default_lifetime_months)
        established = segment in cfg.established_segments

        categories = {t.category for t in customer.transactions}
        volume = sum(t.amount for t in customer.transactions)
        monthly = max(0.0, volume / 12)

        return GrowthMetrics(
            cross_sell_conversion=clamp_pct(base + est.randint(customer.id, "growth.cross_sell", 0, 14)),
            upsell_conversion=clamp_pct(
                int(base * 0.7) + est.randint(customer.id, "growth.upsell", 0, 9)
            ),
            product_per_customer=int(clamp(len(categories), 1, cfg.max_products)),
            new_product_adoption=est.randint(
                customer.id, "growth.adoption", 1 if established else 0, 2 if established else 1
            ),
            revenue_per_customer=round(monthly),
            lifetime_value=round(monthly * lifetime * cfg.margin),
            growth_potential_score=clamp_pct(
                potential + est.randint(customer.id, "growth.potential", 0, 19)
            ),
        )

    # --------------------------------------------------------------- retention

    def days_since_last_activity(self, customer: Customer, now: datetime) -> int:
        """Latest transaction, else account creation, else the unknown-activity default."""
        if customer.transactions:
            last = max(as_utc(t.date) for t in customer.transactions)
            return days_between(last, now)
        if customer.account_created_date is not None:
            return days_between(customer.account_created_date, now)
        return self.settings.retention.unknown_activity_days

    def churn_tier(self, customer: Customer, days_inactive: int) -> ChurnRisk:
        """Segment base tier, raised (never lowered) by inactivity."""
        cfg = self.settings.retention
        tier = cfg.base_tier.get(customer.segment, ChurnRisk.MEDIUM)
        for threshold, minimum in cfg.escalation_days:
            if days_inactive > threshold and minimum.rank > tier.rank:
                tier = minimum
        return tier

    def churn_probability(self, tier: ChurnRisk, days_inactive: int) -> int:
        """Position inside the tier's band grows with inactivity, so it is monotone in days."""
        cfg = self.settings.retention
        low, high = cfg.probability_bands[tier]
        progress = min(1.0, safe_ratio(days_inactive, cfg.saturation_days, default=1.0))
        probability = int(low + (high - low) * progress)
        if tier is not list(ChurnRisk)[-1]:
            probability = min(probability, max(low, high - 1))
        return clamp_pct(probability)

    def retention_metrics(self, customer: Customer, now: Optional[datetime] = None) -> RetentionMetrics:
        cfg = self.settings.retention
        now = now or self.clock()
        days = self.days_since_last_activity(customer, now)
        tier = self.churn_tier(customer, days)
        probability = self.churn_probability(tier, days)
        eligible = customer.segment in cfg.reactivation_segments

        predicted = None
        if tier in AT_RISK_TIERS:
            days_left = max(0, cfg.churn_horizon_days - probability)
            predicted = (as_utc(now) + timedelta(days=days_left)).date()

        return RetentionMetrics(
            churn_risk=tier,
            churn_probability=probability,
            days_since_last_activity=days,
            reactivation_eligible=eligible,
            reactivation_attempts=(
                self.estimator.randint(customer.id, "retention.attempts", 0, 2) if eligible else 0
            ),
            reactivation_success=False,
            retention_score=100 - probability,
            predicted_churn_date=predicted,
        )

    # ------------------------------------------------------------------- trust

    def missing_fields(self, customer: Customer) -> List[str]:
        missing = []
        for name in self.settings.trust.required_fields:
            value = getattr(customer, name, None)
            if value is None or value == "":
                missing.append(name)
        return missing

    def kyc_status(self, completeness: int) -> KYCStatus:
        cfg = self.settings.trust
        if completeness >= cfg.kyc_complete:
            return KYCStatus.COMPLETE
        if completeness >= cfg.kyc_partial:
            return KYCStatus.PARTIAL
        if completeness >= cfg.kyc_pending:
            return KYCStatus.PENDING
        return KYCStatus.EXPIRED

    def trust_compliance(
        self, customer: Customer, now: Optional[datetime] = None
    ) -> TrustComplianceMetrics:
        cfg = self.settings.trust
        now = now or self.clock()
        required = cfg.required_fields
        missing = self.missing_fields(customer)
        completeness = clamp_pct(safe_ratio(len(required) - len(missing), len(required)) * 100)

        consent = customer.marketing_consent
        opted_in = is_opted_in(consent)
        activity = min(cfg.activity_cap, len(customer.transactions) * cfg.activity_per_transaction)
        consent_points = cfg.consent_score_opted_in if opted_in else cfg.consent_score_opted_out
        quality = clamp_pct(activity + completeness * cfg.completeness_weight + consent_points)

        kyc = customer.kyc_status
        kyc_expired = kyc is not None and (
            kyc.level is KYCLevel.EXPIRED
            or (kyc.expires_at is not None and as_utc(kyc.expires_at) <= as_utc(now))
        )

        return TrustComplianceMetrics(
            consent_coverage=100 if opted_in else 50,
            marketing_consent_status=opted_in,
            data_quality_score=quality,
            profile_completeness=completeness,
            audit_trail_completeness=self.estimator.randint(customer.id, "trust.audit_trail", 75, 94),
            last_consent_update=(
                as_utc(consent.last_updated).isoformat()
                if consent is not None and consent.last_updated is not None
                else None
            ),
            kyc_status=self.kyc_status(completeness),
            kyc_level=kyc.level.value if kyc else None,
            kyc_risk_level=kyc.risk_level.value if kyc else None,
            kyc_expired=kyc_expired,
            open_aml_flags=(
                sum(1 for flag in kyc.aml_flags if flag.status != "CLEARED") if kyc else 0
            ),
            data_privacy_compliant=completeness >= cfg.privacy_compliant_at,
            missing_fields=missing,
        )

    # -------------------------------------------------------------- population

    def aggregate(self, customers: Sequence[Customer]) -> AggregateMetrics:
        """Roll up a population through the per-customer profile path."""
        return self.aggregate_profiles([self.build_profile(c) for c in customers])

    @staticmethod
    def aggregate_profiles(profiles: Sequence[CRMMetricsProfile]) -> AggregateMetrics:
        if not profiles:
            return AggregateMetrics()

        aggregate = AggregateMetrics(
            customer_count=len(profiles),
            avg_sla_hit_rate=round(mean(p.service_metrics.sla_hit_rate for p in profiles)),
            avg_response_time=round(mean(p.service_metrics.average_response_time for p in profiles), 1),
            avg_churn_probability=round(mean(p.retention_metrics.churn_probability for p in profiles)),
            avg_data_quality=round(mean(p.trust_compliance.data_quality_score for p in profiles)),
            avg_click_rate=round(mean(p.campaign_engagement.click_rate for p in profiles)),
            avg_profile_completeness=round(
                mean(p.trust_compliance.profile_completeness for p in profiles)
            ),
            total_at_risk=sum(1 for p in profiles if p.retention_metrics.churn_risk in AT_RISK_TIERS),
            total_opted_in=sum(1 for p in profiles if p.trust_compliance.marketing_consent_status),
        )
        logger.info("Population aggregated", extra={"customer_count": aggregate.customer_count})
        return aggregate
