"""
Next Best Action rule set.

Each rule is a predicate over a customer, its CRM metrics profile and the
engine settings, plus a builder that turns a firing rule into one candidate
action. Rules are evaluated in ``RULES`` order; that order is also the last
tie-break when ranking.

Reasoning factors are built from the same signals the predicate checked.
Raw factor weights are normalized so each action's weights sum to at most 100.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from crm_engine.config import EngineSettings, NBAConfig
from crm_engine.models.action import (
    ActionCategory,
    Channel,
    Impact,
    NextBestAction,
    Priority,
    ReasoningFactor,
)
from crm_engine.models.customer import AccountStatus, Customer, PreferredChannel, Segment
from crm_engine.models.metrics import CRMMetricsProfile, KYCStatus
from crm_engine.utils.validators import as_utc, days_between

ACTIVE_SEGMENTS = frozenset({Segment.CHAMPIONS, Segment.LOYAL})
LAPSING_SEGMENTS = frozenset({Segment.AT_RISK, Segment.HIBERNATING})
LIFESTYLE_CATEGORIES = ("F&B", "Shopping")
UTILITY_BILL_CATEGORIES = frozenset({"Utilities", "Recurring Bills"})


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at."""

    customer: Customer
    profile: CRMMetricsProfile
    settings: EngineSettings
    now: datetime

    @property
    def cfg(self) -> NBAConfig:
        return self.settings.nba

    def recent_transactions(self, days: int = 90) -> int:
        cutoff = as_utc(self.now) - timedelta(days=days)
        return sum(1 for t in self.customer.transactions if as_utc(t.date) >= cutoff)

    def spend(self, category: str) -> float:
        return sum(t.amount for t in self.customer.transactions if t.category == category)

    def days_since_created(self) -> Optional[int]:
        if self.customer.account_created_date is None:
            return None
        return days_between(self.customer.account_created_date, self.now)

    def age_between(self, low: int, high: int) -> bool:
        """False when age is unknown."""
        age = self.customer.age
        return age is not None and low <= age <= high


@dataclass(frozen=True)
class NBARule:
    id: str
    predicate: Callable[[RuleContext], bool]
    build: Callable[[RuleContext], NextBestAction]


def format_idr(amount: float) -> str:
    """Compact rupiah amount, e.g. ``Rp 150.0M``."""
    if amount >= 1_000_000_000:
        return f"Rp {amount / 1_000_000_000:.1f}B"
    if amount >= 1_000_000:
        return f"Rp {amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"Rp {amount / 1_000:.0f}K"
    return f"Rp {amount:.0f}"


FactorSpec = Tuple[str, str, float, Impact]


def normalize_factors(specs: Sequence[FactorSpec]) -> List[ReasoningFactor]:
    """Scale raw weights to integers summing to at most 100."""
    total = sum(max(0.0, weight) for _, _, weight, _ in specs)
    factors = []
    for icon, label, weight, impact in specs:
        share = int(max(0.0, weight) / total * 100) if total > 0 else 0
        factors.append(ReasoningFactor(icon=icon, label=label, weight=share, impact=impact))
    return factors


def _action(ctx: RuleContext, rule_id: str, factors: Sequence[FactorSpec], **fields) -> NextBestAction:
    return NextBestAction(
        id=f"nba-{rule_id}-{ctx.customer.id}",
        rule_id=rule_id,
        reasoning_factors=normalize_factors(factors),
        **fields,
    )


def _balance_strength(balance: float, threshold: float) -> float:
    """How far above a threshold a balance sits, saturating at 2x."""
    if threshold <= 0:
        return 1.0
    return min(2.0, balance / threshold)


# --------------------------------------------------------------------- rules


def _priority_upgrade_applies(ctx: RuleContext) -> bool:
    c = ctx.customer
    return (
        c.segment is Segment.CHAMPIONS
        and c.balance > ctx.cfg.priority_balance
        and c.account_status is not AccountStatus.PREMIUM
    )


def _priority_upgrade(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "PRIORITY_UPGRADE",
        [
            ("star", "Champion segment", 30, Impact.POSITIVE),
            (
                "money",
                f"Balance above {format_idr(ctx.cfg.priority_balance)} ({format_idr(c.balance)})",
                35 * _balance_strength(c.balance, ctx.cfg.priority_balance),
                Impact.POSITIVE,
            ),
            ("target", "Not yet on Priority status", 15, Impact.POSITIVE),
        ],
        title="Upgrade to Priority Banking",
        description="Customer qualifies for Priority Banking with exclusive benefits.",
        category=ActionCategory.UPSELL,
        priority=Priority.HIGH,
        confidence=92,
        expected_revenue=5_000_000,
        short_reason=f"Champion with {format_idr(c.balance)} balance, an ideal Priority candidate.",
        long_reason=(
            "RFM Champions holding more than the Priority threshold convert well to "
            "relationship-managed Priority Banking."
        ),
        channels=[Channel.PHONE_CALL, Channel.EMAIL, Channel.BRANCH_VISIT],
        historical_conversion_rate=65,
    )


def _deposit_applies(ctx: RuleContext) -> bool:
    return (
        ctx.customer.balance > ctx.cfg.deposit_balance
        and ctx.recent_transactions() < ctx.cfg.low_activity_transactions_90d
    )


def _deposit(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    recent = ctx.recent_transactions()
    return _action(
        ctx,
        "DEPOSIT_CROSS_SELL",
        [
            ("money", f"Idle balance of {format_idr(c.balance)}", 45, Impact.POSITIVE),
            ("sleep", f"Only {recent} transactions in 90 days", 35, Impact.POSITIVE),
            ("chart", "Opportunity cost of idle funds", 20, Impact.POSITIVE),
        ],
        title="Offer a Time Deposit",
        description="Large idle balance with low activity, a good fit for a time deposit.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.MEDIUM,
        confidence=85,
        expected_revenue=2_500_000,
        short_reason=f"{format_idr(c.balance)} balance with fewer than "
        f"{ctx.cfg.low_activity_transactions_90d} transactions in the last 3 months.",
        channels=[Channel.PHONE_CALL, Channel.EMAIL],
        historical_conversion_rate=52,
    )


def _lifestyle_spend(ctx: RuleContext) -> Tuple[float, float]:
    return ctx.spend(LIFESTYLE_CATEGORIES[0]), ctx.spend(LIFESTYLE_CATEGORIES[1])


def _credit_card_applies(ctx: RuleContext) -> bool:
    fnb, shopping = _lifestyle_spend(ctx)
    return fnb + shopping > ctx.cfg.lifestyle_spend and ctx.customer.segment not in LAPSING_SEGMENTS


def _credit_card(ctx: RuleContext) -> NextBestAction:
    fnb, shopping = _lifestyle_spend(ctx)
    return _action(
        ctx,
        "CREDIT_CARD_CROSS_SELL",
        [
            ("dining", f"F&B spend {format_idr(fnb)}", fnb, Impact.POSITIVE),
            ("bag", f"Shopping spend {format_idr(shopping)}", shopping, Impact.POSITIVE),
            (
                "star",
                f"Active segment ({ctx.customer.segment.value})",
                (fnb + shopping) * 0.4,
                Impact.POSITIVE,
            ),
        ],
        title="Cross-sell a Credit Card",
        description="High lifestyle spender, suited to a rewards credit card.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.MEDIUM,
        confidence=70,
        expected_revenue=1_800_000,
        short_reason=f"F&B and shopping spend of {format_idr(fnb + shopping)}, "
        "strong card rewards potential.",
        channels=[Channel.PHONE_CALL, Channel.EMAIL, Channel.WHATSAPP],
        historical_conversion_rate=45,
    )


def _winback_applies(ctx: RuleContext) -> bool:
    return ctx.customer.segment in LAPSING_SEGMENTS


def _winback(ctx: RuleContext) -> NextBestAction:
    retention = ctx.profile.retention_metrics
    return _action(
        ctx,
        "WINBACK_CAMPAIGN",
        [
            ("warning", f"Segment: {ctx.customer.segment.value}", 50, Impact.NEGATIVE),
            (
                "trend_down",
                f"{retention.days_since_last_activity} days since last activity",
                30,
                Impact.NEGATIVE,
            ),
            ("broken_heart", f"{retention.churn_risk.value} churn risk", 20, Impact.NEGATIVE),
        ],
        title="Winback Campaign",
        description="Customer is at risk of churning and needs a reactivation campaign now.",
        category=ActionCategory.RETENTION,
        priority=Priority.HIGH,
        confidence=88,
        expected_revenue=1_000_000,
        short_reason=f"{ctx.customer.segment.value} segment with high churn risk, act immediately.",
        channels=[Channel.WHATSAPP, Channel.EMAIL, Channel.PUSH],
        historical_conversion_rate=35,
    )


def _onboarding_applies(ctx: RuleContext) -> bool:
    age_days = ctx.days_since_created()
    return (
        age_days is not None
        and age_days <= ctx.cfg.onboarding_days
        and len(ctx.customer.transactions) < ctx.cfg.onboarding_transactions
    )


def _onboarding(ctx: RuleContext) -> NextBestAction:
    count = len(ctx.customer.transactions)
    return _action(
        ctx,
        "ONBOARDING_CAMPAIGN",
        [
            ("new", f"New customer ({ctx.days_since_created()} days)", 40, Impact.POSITIVE),
            ("chart", f"Only {count} transactions", 35, Impact.NEGATIVE),
            ("phone", "Not using key features yet", 25, Impact.NEGATIVE),
        ],
        title="Onboard and Educate a New Customer",
        description="New customer with low engagement, walk them through the features.",
        category=ActionCategory.ACTIVATION,
        priority=Priority.MEDIUM,
        confidence=82,
        expected_revenue=500_000,
        short_reason=f"New customer with {count} transactions, help them get started.",
        channels=[Channel.PUSH, Channel.EMAIL, Channel.WHATSAPP],
        historical_conversion_rate=60,
    )


def _auto_debit_applies(ctx: RuleContext) -> bool:
    return ctx.customer.segment in ACTIVE_SEGMENTS and any(
        t.category in UTILITY_BILL_CATEGORIES for t in ctx.customer.transactions
    )


def _auto_debit(ctx: RuleContext) -> NextBestAction:
    bills = sum(1 for t in ctx.customer.transactions if t.category in UTILITY_BILL_CATEGORIES)
    return _action(
        ctx,
        "AUTO_DEBIT_UTILITY",
        [
            ("star", f"Segment: {ctx.customer.segment.value}", 35, Impact.POSITIVE),
            ("bulb", f"{bills} utility bill payments", 40, Impact.POSITIVE),
            ("repeat", "Recurring transaction potential", 25, Impact.POSITIVE),
        ],
        title="Activate Bill Auto-Debit",
        description="Loyal customer paying regular bills, offer auto-debit for convenience.",
        category=ActionCategory.SERVICE,
        priority=Priority.LOW,
        confidence=78,
        expected_revenue=300_000,
        short_reason="Loyal customer with routine utility payments, ideal for auto-debit.",
        channels=[Channel.MOBILE_APP, Channel.EMAIL],
        historical_conversion_rate=55,
    )


def _home_loan_applies(ctx: RuleContext) -> bool:
    return (
        ctx.age_between(25, 45)
        and ctx.customer.balance > ctx.cfg.home_loan_balance
        and ctx.customer.segment not in LAPSING_SEGMENTS
    )


def _home_loan(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "HOME_LOAN",
        [
            ("house", f"Prime home-buying age ({c.age})", 30, Impact.POSITIVE),
            (
                "money",
                f"Balance above {format_idr(ctx.cfg.home_loan_balance)}, down payment ready",
                40,
                Impact.POSITIVE,
            ),
            ("star", f"Active customer ({c.segment.value})", 30, Impact.POSITIVE),
        ],
        title="Offer a Home Loan",
        description="Productive age with the means for a down payment.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.HIGH,
        confidence=75,
        expected_revenue=15_000_000,
        short_reason=f"Age {c.age} with {format_idr(c.balance)} balance, prime for a home loan.",
        channels=[Channel.PHONE_CALL, Channel.BRANCH_VISIT, Channel.WHATSAPP],
        historical_conversion_rate=25,
    )


def _insurance_applies(ctx: RuleContext) -> bool:
    return ctx.customer.balance > ctx.cfg.insurance_balance or ctx.customer.segment in ACTIVE_SEGMENTS


def _insurance(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "INSURANCE_CROSS_SELL",
        [
            ("money", f"Financially stable ({format_idr(c.balance)})", 40, Impact.POSITIVE),
            ("shield", "No protection product on file", 35, Impact.POSITIVE),
            ("family", f"Segment: {c.segment.value}", 25, Impact.POSITIVE),
        ],
        title="Cross-sell Life or Health Insurance",
        description="Stable financial profile, offer insurance protection.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.MEDIUM,
        confidence=72,
        expected_revenue=3_000_000,
        short_reason="Stable financial profile with low insurance awareness.",
        channels=[Channel.PHONE_CALL, Channel.BRANCH_VISIT],
        historical_conversion_rate=30,
    )


def _digital_applies(ctx: RuleContext) -> bool:
    c = ctx.customer
    traditional = c.preferred_channel in (PreferredChannel.BRANCH, PreferredChannel.ATM)
    return traditional and c.age is not None and c.age < 55


def _digital(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "DIGITAL_ACTIVATION",
        [
            ("phone", f"Digital-capable age ({c.age})", 35, Impact.POSITIVE),
            ("bank", f"Prefers {c.preferred_channel.value}", 40, Impact.NEGATIVE),
            ("bulb", "Cost saving through digital migration", 25, Impact.POSITIVE),
        ],
        title="Activate Mobile Banking",
        description="Customer still prefers traditional channels, help them move to digital.",
        category=ActionCategory.ACTIVATION,
        priority=Priority.LOW,
        confidence=68,
        expected_revenue=0,
        short_reason=f"Prefers {c.preferred_channel.value} at age {c.age}, strong digital potential.",
        channels=[Channel.BRANCH_VISIT, Channel.WHATSAPP, Channel.PHONE_CALL],
        historical_conversion_rate=45,
    )


def _retirement_applies(ctx: RuleContext) -> bool:
    return ctx.age_between(50, 60) and ctx.customer.balance > ctx.cfg.priority_balance


def _retirement(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "RETIREMENT_PLANNING",
        [
            ("clock", f"Pre-retirement age ({c.age})", 35, Impact.POSITIVE),
            ("money", f"High balance ({format_idr(c.balance)})", 40, Impact.POSITIVE),
            ("chart", "No pension product on file", 25, Impact.POSITIVE),
        ],
        title="Offer Retirement Planning and Wealth Management",
        description="Pre-retirement customer with substantial assets who needs a plan.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.HIGH,
        confidence=85,
        expected_revenue=10_000_000,
        short_reason=f"Age {c.age} with {format_idr(c.balance)} in assets, "
        "time for retirement planning.",
        channels=[Channel.PHONE_CALL, Channel.BRANCH_VISIT],
        historical_conversion_rate=40,
    )


def _young_adult_applies(ctx: RuleContext) -> bool:
    return ctx.age_between(18, 22) and ctx.customer.account_status is AccountStatus.ACTIVE


def _young_adult(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    return _action(
        ctx,
        "YOUNG_ADULT_UPGRADE",
        [
            ("school", "Likely former student account", 40, Impact.POSITIVE),
            ("cake", f"Adult age ({c.age})", 45, Impact.POSITIVE),
            ("phone", "Digital native, prefers mobile", 15, Impact.POSITIVE),
        ],
        title="Upgrade to a Regular Savings Account with Debit Card",
        description="Young adult ready to move off a student account.",
        category=ActionCategory.UPSELL,
        priority=Priority.MEDIUM,
        confidence=90,
        expected_revenue=500_000,
        short_reason=f"Age {c.age}, ready for regular banking products.",
        channels=[Channel.MOBILE_APP, Channel.WHATSAPP, Channel.PUSH],
        historical_conversion_rate=70,
    )


def _idle_cash_applies(ctx: RuleContext) -> bool:
    return (
        ctx.customer.balance > ctx.cfg.priority_balance
        and ctx.recent_transactions() < ctx.cfg.idle_transactions_90d
    )


def _idle_cash(ctx: RuleContext) -> NextBestAction:
    c = ctx.customer
    recent = ctx.recent_transactions()
    return _action(
        ctx,
        "IDLE_CASH_OPTIMIZATION",
        [
            ("money", f"High idle balance ({format_idr(c.balance)})", 50, Impact.POSITIVE),
            ("sleep", f"Low activity ({recent} transactions in 90 days)", 30, Impact.POSITIVE),
            ("chart", "Missing investment opportunity", 20, Impact.POSITIVE),
        ],
        title="Optimize Idle Funds with Deposits or Mutual Funds",
        description="Large balance sitting idle, high opportunity cost.",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.HIGH,
        confidence=80,
        expected_revenue=4_000_000,
        short_reason=f"{format_idr(c.balance)} idle with only {recent} transactions in 3 months.",
        channels=[Channel.PHONE_CALL, Channel.EMAIL],
        historical_conversion_rate=48,
    )


def _service_recovery_applies(ctx: RuleContext) -> bool:
    service = ctx.profile.service_metrics
    return (
        service.pending_tickets >= ctx.cfg.pending_ticket_alert
        or service.repeat_complaint_rate >= ctx.cfg.repeat_complaint_alert
    )


def _service_recovery(ctx: RuleContext) -> NextBestAction:
    service = ctx.profile.service_metrics
    return _action(
        ctx,
        "SERVICE_RECOVERY",
        [
            (
                "ticket",
                f"{service.pending_tickets} unresolved tickets",
                service.pending_tickets * 10 + 10,
                Impact.NEGATIVE,
            ),
            (
                "repeat",
                f"Repeat complaint rate {service.repeat_complaint_rate}%",
                service.repeat_complaint_rate,
                Impact.NEGATIVE,
            ),
            (
                "timer",
                f"SLA hit rate {service.sla_hit_rate}%",
                100 - service.sla_hit_rate,
                Impact.NEGATIVE,
            ),
        ],
        title="Resolve Open Service Issues",
        description="Outstanding tickets put the relationship at risk, follow up before selling.",
        category=ActionCategory.SERVICE,
        priority=Priority.HIGH,
        confidence=min(95, 60 + service.pending_tickets * 5 + service.repeat_complaint_rate // 5),
        expected_revenue=0,
        short_reason=f"{service.pending_tickets} pending tickets, repeat complaints at "
        f"{service.repeat_complaint_rate}%.",
        channels=[Channel.PHONE_CALL],
    )


def _kyc_refresh_applies(ctx: RuleContext) -> bool:
    trust = ctx.profile.trust_compliance
    return trust.kyc_expired or trust.kyc_status in (KYCStatus.PENDING, KYCStatus.EXPIRED)


def _kyc_refresh(ctx: RuleContext) -> NextBestAction:
    trust = ctx.profile.trust_compliance
    missing = ", ".join(trust.missing_fields) or "none"
    if trust.kyc_expired:
        record = ("clock", "KYC record expired", 25, Impact.NEGATIVE)
    else:
        record = ("clock", "KYC record current", 5, Impact.NEUTRAL)
    return _action(
        ctx,
        "KYC_REFRESH",
        [
            ("id", f"KYC status {trust.kyc_status.value}", 40, Impact.NEGATIVE),
            (
                "form",
                f"Profile {trust.profile_completeness}% complete (missing: {missing})",
                35,
                Impact.NEGATIVE,
            ),
            record,
        ],
        title="Refresh KYC Documents",
        description="Customer data is incomplete or KYC has lapsed, collect updated documents.",
        category=ActionCategory.SERVICE,
        priority=Priority.MEDIUM,
        confidence=90,
        expected_revenue=0,
        short_reason=f"KYC {trust.kyc_status.value.lower()} with "
        f"{len(trust.missing_fields)} missing fields.",
        channels=[Channel.BRANCH_VISIT, Channel.PHONE_CALL],
    )


RULES: List[NBARule] = [
    NBARule("PRIORITY_UPGRADE", _priority_upgrade_applies, _priority_upgrade),
    NBARule("DEPOSIT_CROSS_SELL", _deposit_applies, _deposit),
    NBARule("CREDIT_CARD_CROSS_SELL", _credit_card_applies, _credit_card),
    NBARule("WINBACK_CAMPAIGN", _winback_applies, _winback),
    NBARule("ONBOARDING_CAMPAIGN", _onboarding_applies, _onboarding),
    NBARule("AUTO_DEBIT_UTILITY", _auto_debit_applies, _auto_debit),
    NBARule("HOME_LOAN", _home_loan_applies, _home_loan),
    NBARule("INSURANCE_CROSS_SELL", _insurance_applies, _insurance),
    NBARule("DIGITAL_ACTIVATION", _digital_applies, _digital),
    NBARule("RETIREMENT_PLANNING", _retirement_applies, _retirement),
    NBARule("YOUNG_ADULT_UPGRADE", _young_adult_applies, _young_adult),
    NBARule("IDLE_CASH_OPTIMIZATION", _idle_cash_applies, _idle_cash),
    NBARule("SERVICE_RECOVERY", _service_recovery_applies, _service_recovery),
    NBARule("KYC_REFRESH", _kyc_refresh_applies, _kyc_refresh),
]
