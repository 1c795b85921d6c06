"""
CRM health metric tests: service, campaign, growth, retention, trust and
population aggregation.

Run with: pytest tests/unit/test_crm_metrics.py -v
"""

from datetime import timedelta
from statistics import mean

import pytest
from conftest import NOW, days_ago, make_transaction

from crm_engine.models.customer import (
    AMLFlag,
    CampaignInteraction,
    InteractionType,
    KYCLevel,
    KYCRecord,
    MarketingConsent,
    Segment,
    ServiceInteraction,
)
from crm_engine.models.metrics import AggregateMetrics, ChurnRisk, KYCStatus
from crm_engine.services.crm_metrics_service import CRMHealthAggregator
from crm_engine.utils.estimator import SeededEstimator


@pytest.fixture
def aggregator(settings, estimator, clock):
    return CRMHealthAggregator(settings, estimator, clock)


class TestServiceMetrics:
    """Ticket counts and SLA."""

    def test_counts_from_interactions(self, aggregator, make_customer):
        interactions = [
            ServiceInteraction(id="i1", type="ticket", status="resolved", timestamp=days_ago(3)),
            ServiceInteraction(id="i2", type="call", status="resolved", timestamp=days_ago(4)),
            ServiceInteraction(id="i3", type="ticket", status="open", timestamp=days_ago(1)),
            ServiceInteraction(id="i4", type="chat", status="open", timestamp=days_ago(1)),
        ]
        metrics = aggregator.service_metrics(make_customer(interactions=interactions))
        assert metrics.total_tickets == 3
        assert metrics.resolved_tickets == 2
        assert metrics.pending_tickets == 1

    @pytest.mark.parametrize("seed", range(10))
    def test_ticket_invariant_with_estimates(self, settings, clock, make_customer, seed):
        """resolved + pending == total even when counts are estimated."""
        aggregator = CRMHealthAggregator(settings, SeededEstimator(seed), clock)
        metrics = aggregator.service_metrics(make_customer(id=f"C{seed}", interactions=[]))
        assert metrics.resolved_tickets + metrics.pending_tickets == metrics.total_tickets
        assert 0 <= metrics.sla_hit_rate <= 100
        assert 0 <= metrics.satisfaction_score <= 5

    def test_segment_bonus_orders_sla(self, aggregator, make_customer):
        champion = aggregator.service_metrics(make_customer(segment=Segment.CHAMPIONS))
        hibernating = aggregator.service_metrics(make_customer(segment=Segment.HIBERNATING))
        assert champion.sla_hit_rate > hibernating.sla_hit_rate
        assert champion.repeat_complaint_rate < hibernating.repeat_complaint_rate


class TestCampaignEngagement:
    """Campaign funnel metrics."""

    def test_counts_from_history(self, aggregator, make_customer):
        kinds = [InteractionType.VIEW, InteractionType.CLICK, InteractionType.CONVERT, InteractionType.IGNORE]
        history = [
            CampaignInteraction(id=f"c{i}", campaign_id="cmp-1", interaction_type=kind, timestamp=days_ago(i))
            for i, kind in enumerate(kinds)
        ]
        metrics = aggregator.campaign_engagement(make_customer(campaign_history=history))
        assert metrics.total_campaigns_sent == 4
        assert metrics.total_clicks == 2
        assert metrics.total_opens == 3
        assert metrics.total_conversions == 1
        assert metrics.email_open_rate == 75
        assert metrics.click_rate == 50
        assert metrics.conversion_per_journey == 1.0
        assert metrics.opt_in_rate == 100

    def test_no_history_not_opted_in_is_all_zero(self, aggregator, opted_out):
        metrics = aggregator.campaign_engagement(opted_out)
        assert metrics.opt_in_rate == 0
        assert metrics.total_campaigns_sent == 0
        assert metrics.email_open_rate == 0
        assert metrics.click_rate == 0
        assert metrics.average_journey_length == 0

    def test_missing_consent_record_counts_as_opted_out(self, aggregator, make_customer):
        metrics = aggregator.campaign_engagement(make_customer(marketing_consent=None))
        assert metrics.opt_in_rate == 0


class TestGrowthMetrics:
    """Growth bases follow segment value."""

    def test_segment_ordering(self, aggregator, make_customer):
        champion = aggregator.growth_metrics(make_customer(segment=Segment.CHAMPIONS))
        potential = aggregator.growth_metrics(make_customer(segment=Segment.POTENTIAL))
        at_risk = aggregator.growth_metrics(make_customer(segment=Segment.AT_RISK))
        assert champion.cross_sell_conversion > potential.cross_sell_conversion
        assert potential.cross_sell_conversion > at_risk.cross_sell_conversion
        assert champion.growth_potential_score > potential.growth_potential_score

    def test_products_bounded(self, aggregator, make_customer):
        transactions = [
            make_transaction(i, age_days=i, amount=1_200_000, category=f"Category {i}") for i in range(8)
        ]
        growth = aggregator.growth_metrics(make_customer(transactions=transactions))
        assert growth.product_per_customer == 5
        assert growth.revenue_per_customer == 800_000

    def test_no_transactions_has_one_product(self, aggregator, make_customer):
        assert aggregator.growth_metrics(make_customer(transactions=[])).product_per_customer == 1


class TestRetentionMetrics:
    """Churn tiers and probability."""

    def _inactive_for(self, make_customer, days, segment=Segment.POTENTIAL):
        return make_customer(
            segment=segment,
            transactions=[make_transaction(1, age_days=days, amount=100_000, category="F&B")],
        )

    def test_churn_monotone_in_inactivity(self, aggregator, make_customer):
        """More days inactive never lowers the tier or the probability."""
        previous_rank, previous_probability = -1, -1
        for days in [0, 10, 31, 60, 91, 150, 181, 300, 400, 900]:
            retention = aggregator.retention_metrics(self._inactive_for(make_customer, days))
            assert retention.days_since_last_activity == days
            assert retention.churn_risk.rank >= previous_rank
            assert retention.churn_probability >= previous_probability
            previous_rank = retention.churn_risk.rank
            previous_probability = retention.churn_probability

    @pytest.mark.parametrize("segment", list(Segment))
    def test_thirty_vs_ninety_days(self, aggregator, make_customer, segment):
        recent = aggregator.retention_metrics(self._inactive_for(make_customer, 30, segment))
        lapsed = aggregator.retention_metrics(self._inactive_for(make_customer, 90, segment))
        assert lapsed.churn_probability >= recent.churn_probability
        assert lapsed.churn_risk.rank >= recent.churn_risk.rank

    @pytest.mark.parametrize("days,expected", [
        (30, ChurnRisk.LOW),
        (31, ChurnRisk.MEDIUM),
        (91, ChurnRisk.HIGH),
        (181, ChurnRisk.CRITICAL),
    ])
    def test_escalation_thresholds(self, aggregator, make_customer, days, expected):
        retention = aggregator.retention_metrics(self._inactive_for(make_customer, days))
        assert retention.churn_risk is expected

    def test_at_risk_lapsed_customer_is_high_or_worse(self, aggregator, opted_out):
        retention = aggregator.retention_metrics(opted_out)
        assert retention.churn_risk.rank >= ChurnRisk.HIGH.rank
        assert retention.churn_probability >= 40
        assert retention.reactivation_eligible is True
        assert retention.predicted_churn_date is not None
        assert retention.predicted_churn_date >= NOW.date()

    def test_active_champion_is_low(self, aggregator, champion):
        retention = aggregator.retention_metrics(champion)
        assert retention.churn_risk is ChurnRisk.LOW
        assert retention.churn_probability < 15
        assert retention.retention_score == 100 - retention.churn_probability
        assert retention.predicted_churn_date is None
        assert retention.reactivation_attempts == 0

    def test_hibernating_base_tier_is_critical(self, aggregator, make_customer):
        customer = self._inactive_for(make_customer, 1, segment=Segment.HIBERNATING)
        assert aggregator.retention_metrics(customer).churn_risk is ChurnRisk.CRITICAL

    def test_unknown_activity_falls_back_to_default(self, aggregator, make_customer):
        customer = make_customer(transactions=[], account_created_date=None)
        retention = aggregator.retention_metrics(customer)
        assert retention.days_since_last_activity == 365
        assert retention.churn_risk is ChurnRisk.CRITICAL
        assert retention.churn_probability == 100

    def test_account_creation_used_without_transactions(self, aggregator, make_customer):
        customer = make_customer(transactions=[], account_created_date=days_ago(12))
        assert aggregator.retention_metrics(customer).days_since_last_activity == 12


class TestTrustCompliance:
    """Profile completeness, consent and KYC."""

    def test_complete_profile(self, aggregator, make_customer):
        trust = aggregator.trust_compliance(make_customer())
        assert trust.profile_completeness == 100
        assert trust.missing_fields == []
        assert trust.kyc_status is KYCStatus.COMPLETE
        assert trust.data_privacy_compliant is True
        assert trust.marketing_consent_status is True
        assert trust.consent_coverage == 100
        assert trust.kyc_expired is False

    def test_empty_string_counts_as_missing(self, aggregator, make_customer):
        trust = aggregator.trust_compliance(make_customer(email="", occupation=None, gender=""))
        assert trust.missing_fields == ["email", "occupation", "gender"]
        assert trust.profile_completeness == 57
        assert trust.kyc_status is KYCStatus.PENDING
        assert trust.data_privacy_compliant is False

    def test_data_quality_formula(self, aggregator, make_customer):
        transactions = [make_transaction(i, age_days=i, amount=10, category="F&B") for i in range(4)]
        trust = aggregator.trust_compliance(make_customer(transactions=transactions))
        # activity 8 + completeness 100 * 0.4 + opted-in 20
        assert trust.data_quality_score == 68

    def test_opted_out_consent(self, aggregator, opted_out):
        trust = aggregator.trust_compliance(opted_out)
        assert trust.marketing_consent_status is False
        assert trust.consent_coverage == 50

    def test_no_kyc_record_is_not_expired(self, aggregator, make_customer):
        trust = aggregator.trust_compliance(make_customer(kyc_status=None))
        assert trust.kyc_expired is False
        assert trust.kyc_level is None

    def test_expired_kyc_and_open_flags(self, aggregator, make_customer):
        kyc = KYCRecord(
            level=KYCLevel.STANDARD,
            expires_at=NOW - timedelta(days=1),
            aml_flags=[
                AMLFlag(type="LARGE_CASH", flagged_at=days_ago(40)),
                AMLFlag(type="STRUCTURING", flagged_at=days_ago(80), status="CLEARED"),
                AMLFlag(type="PEP", flagged_at=days_ago(10), status="ESCALATED"),
            ],
        )
        trust = aggregator.trust_compliance(make_customer(kyc_status=kyc))
        assert trust.kyc_expired is True
        assert trust.open_aml_flags == 2
        assert trust.kyc_level == "STANDARD"

    def test_last_consent_update_is_iso(self, aggregator, make_customer):
        consent = MarketingConsent(opt_in=True, last_updated=days_ago(2))
        trust = aggregator.trust_compliance(make_customer(marketing_consent=consent))
        assert trust.last_consent_update.startswith("2024-05-30")


class TestAggregation:
    """Population roll-up goes through the per-customer profiles."""

    def test_empty_population(self, aggregator):
        assert aggregator.aggregate([]) == AggregateMetrics()

    def test_aggregate_matches_profiles(self, aggregator, champion, opted_out, make_customer):
        customers = [champion, opted_out, make_customer(id="C003")]
        profiles = [aggregator.build_profile(c) for c in customers]
        aggregate = aggregator.aggregate(customers)

        assert aggregate == CRMHealthAggregator.aggregate_profiles(profiles)
        assert aggregate.customer_count == 3
        assert aggregate.avg_churn_probability == round(
            mean(p.retention_metrics.churn_probability for p in profiles)
        )
        assert aggregate.total_opted_in == 2
        assert aggregate.total_at_risk == sum(
            1 for p in profiles if p.retention_metrics.churn_risk in (ChurnRisk.HIGH, ChurnRisk.CRITICAL)
        )

    def test_profiles_are_deterministic(self, settings, clock, champion):
        first = CRMHealthAggregator(settings, SeededEstimator(7), clock).build_profile(champion)
        second = CRMHealthAggregator(settings, SeededEstimator(7), clock).build_profile(champion)
        assert first == second
