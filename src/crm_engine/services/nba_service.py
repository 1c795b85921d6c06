"""
Next Best Action engine.

Pipeline: evaluate rules -> consent gate -> dedupe -> rank -> truncate.
Truncation keeps a slot for a revenue action when one survives gating.
The engine performs no I/O; executing an action is the dispatcher's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from crm_engine.config import EngineSettings
from crm_engine.models.action import ActionCategory, NextBestAction
from crm_engine.models.customer import Customer
from crm_engine.models.metrics import CRMMetricsProfile
from crm_engine.services.consent import apply_consent_gate
from crm_engine.services.crm_metrics_service import CRMHealthAggregator
from crm_engine.services.nba_rules import RULES, NBARule, RuleContext
from crm_engine.utils.estimator import Clock, Estimator, utc_now
from crm_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

REVENUE_CATEGORIES = frozenset({ActionCategory.UPSELL, ActionCategory.CROSS_SELL})


class NBAEngine:
    """Ranked, consent-gated recommendations for one customer."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        aggregator: Optional[CRMHealthAggregator] = None,
        estimator: Optional[Estimator] = None,
        clock: Clock = utc_now,
        rules: Optional[Sequence[NBARule]] = None,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.clock = clock
        self.aggregator = aggregator or CRMHealthAggregator(self.settings, estimator, clock)
        self.rules = list(rules) if rules is not None else list(RULES)
        self._order = {rule.id: index for index, rule in enumerate(self.rules)}

    def candidates(
        self, customer: Customer, crm_profile: CRMMetricsProfile, now: Optional[datetime] = None
    ) -> List[NextBestAction]:
        """Every action whose rule fires, in rule order, before any gating."""
        ctx = RuleContext(
            customer=customer, profile=crm_profile, settings=self.settings, now=now or self.clock()
        )
        fired = []
        for rule in self.rules:
            if rule.predicate(ctx):
                fired.append(rule.build(ctx))
        logger.debug(
            "Rules evaluated",
            extra={"customer_id": customer.id, "fired": [a.rule_id for a in fired]},
        )
        return fired

    def generate(
        self,
        customer: Customer,
        crm_profile: Optional[CRMMetricsProfile] = None,
        max_actions: Optional[int] = None,
    ) -> List[NextBestAction]:
        """
        Top actions for a customer, most important first.

        An empty list means no rule fired; callers render an explicit empty
        state rather than a fallback action.
        """
        if crm_profile is None:
            crm_profile = self.aggregator.build_profile(customer)
        now = self.clock()
        if max_actions is None:
            max_actions = self.settings.nba.default_max_actions

        gated = apply_consent_gate(
            self.candidates(customer, crm_profile, now),
            consent=customer.marketing_consent,
            now=now,
            marketing_channels=self.settings.nba.marketing_channels,
        )
        return self.truncate(self.rank(self.dedupe(gated)), max_actions)

    @staticmethod
    def dedupe(actions: Sequence[NextBestAction]) -> List[NextBestAction]:
        """Keep the first action per (category, title)."""
        seen = set()
        unique = []
        for action in actions:
            key = (action.category, action.title)
            if key in seen:
                continue
            seen.add(key)
            unique.append(action)
        return unique

    def rank(self, actions: Sequence[NextBestAction]) -> List[NextBestAction]:
        """Priority, then confidence, then expected revenue, then rule order."""
        return sorted(
            actions,
            key=lambda a: (
                a.priority.rank,
                -a.confidence,
                -a.expected_revenue,
                self._order.get(a.rule_id, len(self._order)),
            ),
        )

    def truncate(self, ranked: Sequence[NextBestAction], limit: int) -> List[NextBestAction]:
        """
        First ``limit`` ranked actions.

        With ``reserve_revenue_slot`` on, housekeeping actions cannot fill every
        slot: if none of the kept actions is an
        UPSELL or CROSS_SELL, the best-ranked one of those replaces the last
        kept action. Rank order is preserved.
        """
        top = list(ranked[: max(0, limit)])
        if not top or not self.settings.nba.reserve_revenue_slot:
            return top
        if any(a.category in REVENUE_CATEGORIES for a in top):
            return top
        revenue = next((a for a in ranked[len(top):] if a.category in REVENUE_CATEGORIES), None)
        if revenue is not None:
            top[-1] = revenue
        return top

    def nba_stats(self, customers: Sequence[Customer]) -> Dict[str, Dict[str, float]]:
        """Per rule id: how many customers get the action and its total expected revenue."""
        stats: Dict[str, Dict[str, float]] = {}
        for customer in customers:
            for action in self.generate(customer, max_actions=len(self.rules)):
                entry = stats.setdefault(action.rule_id, {"count": 0, "total_revenue": 0.0})
                entry["count"] += 1
                entry["total_revenue"] += action.expected_revenue
        logger.info(
            "NBA statistics computed",
            extra={"customer_count": len(customers), "rules_fired": len(stats)},
        )
        return stats
