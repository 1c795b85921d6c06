"""
Transaction behavior analytics.

Reduces a transaction history into summary statistics, a utility
dependency profile and a transfer loyalty profile. Pure and order independent: every statistic is derived
from the full list rather than assuming it arrives sorted.
"""

from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence

from crm_engine.config import EngineSettings
from crm_engine.models.analytics import (
    BehaviorAnalytics,
    TopUpFrequency,
    TransferAnalytics,
    TransferInsights,
    TransferPersona,
    UtilityAnalytics,
)
from crm_engine.models.customer import RiskLevel, Transaction, TransferMethod, TransferType
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc, clamp, safe_ratio

logger = get_logger(__name__)

UTILITY_CATEGORIES = frozenset({"Utilities", "Recurring Bills", "Government Services"})
TRANSFER_CATEGORY = "Transfer"
DAYS_PER_MONTH = 30

NO_TRANSFER_ADVICE = "Encourage digital banking usage with transfer promotions"
ECOSYSTEM_ADVICE = (
    "Loyal ecosystem user, a candidate for VIP services",
    "Offer a family banking package with bundled benefits",
    "Explore a payroll partnership",
)
COMPETITOR_ADVICE = (
    "High competitor exposure, retention action needed now",
    "Offer a free inter-bank transfer promo (10 per month)",
    "Arrange personal outreach from a relationship manager",
)
BALANCED_ADVICE = (
    "Balanced user, room to grow loyalty",
    "Promote intra-bank benefits: zero fees and instant transfers",
)
TOP_UP_ADVICE = "Regular top-ups detected, suggest payroll auto-debit"
WINBACK_ADVICE = "High transfer churn risk, start a win-back campaign"


class BehaviorAnalyzer:
    """Summary statistics over a customer's transactions."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = (settings or EngineSettings()).validate()

    def analyze(self, transactions: Sequence[Transaction]) -> BehaviorAnalytics:
        if not transactions:
            return BehaviorAnalytics()

        count = len(transactions)
        total = sum(t.amount for t in transactions)
        dates = [as_utc(t.date) for t in transactions]
        first, last = min(dates), max(dates)

        span_days = (last - first).total_seconds() / 86400
        months = max(1.0, span_days / DAYS_PER_MONTH)

        analytics = BehaviorAnalytics(
            average_transaction_amount=round(total / count, 2),
            total_transaction_volume=total,
            dominant_category=self.dominant_category(transactions),
            transaction_frequency=round(count / months, 2),
            last_transaction_date=last.date().isoformat(),
        )
        logger.debug("Behavior analyzed", extra={"transactions": count})
        return analytics

    @staticmethod
    def dominant_category(transactions: Sequence[Transaction]) -> str:
        """Most frequent category; ties go to the lexicographically smallest name."""
        if not transactions:
            return "N/A"
        counts = Counter(t.category for t in transactions)
        return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]

    def utility(self, transactions: Sequence[Transaction]) -> UtilityAnalytics:
        """Recurring bill dependency and utility persona."""
        utility_tx = [t for t in transactions if t.category in UTILITY_CATEGORIES]
        if not utility_tx:
            return UtilityAnalytics()

        providers: List[str] = sorted({p for p in (t.provider or t.merchant for t in utility_tx) if p})
        recurring = sum(1 for t in utility_tx if t.is_recurring)
        share = safe_ratio(len(utility_tx), len(transactions)) * 100
        dependency = clamp(recurring * 15 + len(providers) * 5 + share * 0.2)

        return UtilityAnalytics(
            total_utility_transactions=len(utility_tx),
            total_utility_spend=sum(t.amount for t in utility_tx),
            unique_providers=providers,
            recurring_bill_count=recurring,
            utility_spend_percentage=round(clamp(share)),
            dependency_score=round(dependency),
            is_primary_banking_user=recurring >= 3,
            persona=self.utility_persona(recurring),
        )

    @staticmethod
    def utility_persona(recurring_bills: int) -> str:
        if recurring_bills >= 5:
            return "Utility Champion"
        if recurring_bills >= 3:
            return "Utility Power User"
        if recurring_bills >= 1:
            return "Utility User"
        return "Non-Utility User"

    def transfer(self, transactions: Sequence[Transaction]) -> TransferAnalytics:
        """
        Transfer loyalty profile over ``Transfer`` transactions.

        Loyalty is the intra-bank share of bank transfers (50 when there are
        none). Persona, cross-bank exposure, top-up frequency and churn risk
        are read off the configured cutoffs.
        """
        transfers = [t for t in transactions if t.category == TRANSFER_CATEGORY]
        if not transfers:
            return TransferAnalytics(recommendations=[NO_TRANSFER_ADVICE])

        cfg = self.settings.transfers
        intra = sum(1 for t in transfers if t.transfer_method is TransferMethod.INTRA_BANK)
        inter = sum(1 for t in transfers if t.transfer_method is TransferMethod.INTER_BANK)
        top_ups = [t.amount for t in transfers if t.transfer_type is TransferType.TOP_UP]
        outgoing = [abs(t.amount) for t in transfers if t.transfer_type is TransferType.TRANSFER_OUT]
        positive_top_ups = [amount for amount in top_ups if amount > 0]

        loyalty = safe_ratio(intra, intra + inter, default=0.5) * 100
        if loyalty > cfg.loyal_above:
            persona = TransferPersona.LOYAL
        elif loyalty < cfg.multi_bank_below:
            persona = TransferPersona.MULTI_BANK
        else:
            persona = TransferPersona.BALANCED

        if inter > cfg.exposure_high_above:
            exposure = RiskLevel.HIGH
        elif inter > cfg.exposure_medium_above:
            exposure = RiskLevel.MEDIUM
        else:
            exposure = RiskLevel.LOW

        if len(top_ups) > cfg.frequent_top_ups_above:
            frequency = TopUpFrequency.FREQUENT
        elif len(top_ups) > cfg.occasional_top_ups_above:
            frequency = TopUpFrequency.OCCASIONAL
        else:
            frequency = TopUpFrequency.RARE

        if loyalty < cfg.high_churn_loyalty_below and exposure is RiskLevel.HIGH:
            churn = RiskLevel.HIGH
        elif loyalty < cfg.medium_churn_loyalty_below and exposure is not RiskLevel.LOW:
            churn = RiskLevel.MEDIUM
        else:
            churn = RiskLevel.LOW

        advice: List[str] = []
        if persona is TransferPersona.LOYAL and intra > cfg.ecosystem_transfers_above:
            advice.extend(ECOSYSTEM_ADVICE)
        elif persona is TransferPersona.MULTI_BANK and inter > cfg.ecosystem_transfers_above:
            advice.extend(COMPETITOR_ADVICE)
        elif persona is TransferPersona.BALANCED:
            advice.extend(BALANCED_ADVICE)
        if frequency is TopUpFrequency.FREQUENT:
            advice.append(TOP_UP_ADVICE)
        if churn is RiskLevel.HIGH:
            advice.append(WINBACK_ADVICE)

        analytics = TransferAnalytics(
            intra_bank_count=intra,
            inter_bank_count=inter,
            top_up_count=len(top_ups),
            transfer_out_count=len(outgoing),
            average_top_up=round(safe_ratio(sum(positive_top_ups), len(positive_top_ups)), 2),
            average_transfer_out=round(safe_ratio(sum(outgoing), len(outgoing)), 2),
            persona=persona,
            insights=TransferInsights(
                loyalty_score=round(loyalty, 2),
                cross_bank_exposure=exposure,
                top_up_frequency=frequency,
                churn_risk=churn,
            ),
            recommendations=advice,
        )
        logger.debug(
            "Transfer behavior analyzed",
            extra={"transfers": len(transfers), "persona": persona.value},
        )
        return analytics
