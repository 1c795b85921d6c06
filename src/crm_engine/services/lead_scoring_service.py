"""
Lead scoring.

Composite 0-100 score from three additive bands (balance, engagement,
recency) and a HOT/WARM/COLD temperature from configurable cutoffs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from crm_engine.config import EngineSettings
from crm_engine.models.customer import Customer
from crm_engine.models.lead import LeadContext, ScoredLead, ScoreFactors, Temperature
from crm_engine.services.engagement_service import EngagementScorer
from crm_engine.services.nba_service import NBAEngine
from crm_engine.utils.error_handling import ValidationError
from crm_engine.utils.estimator import Clock, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc, clamp, days_between, safe_ratio

logger = get_logger(__name__)


class LeadScorer:
    """Scores and ranks customers being worked as sales leads."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        engagement: Optional[EngagementScorer] = None,
        nba_engine: Optional[NBAEngine] = None,
        clock: Clock = utc_now,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.engagement = engagement or EngagementScorer(self.settings)
        self.nba_engine = nba_engine or NBAEngine(self.settings, clock=clock)
        self.clock = clock

    # --------------------------------------------------------------- sub-scores

    def balance_score(self, balance: float) -> int:
        cfg = self.settings.leads
        ratio = min(1.0, safe_ratio(max(0.0, balance), cfg.balance_ceiling))
        return int(clamp(round(cfg.balance_max * ratio), 0, cfg.balance_max))

    def engagement_score(self, consistency: int, interest_level: int) -> int:
        cfg = self.settings.leads
        blend = cfg.consistency_weight * consistency / 100 + cfg.interest_weight * interest_level / 10
        return int(clamp(round(cfg.engagement_max * blend), 0, cfg.engagement_max))

    def recency_score(self, last_contact: Optional[datetime]) -> int:
        """Full marks for a contact today, fading to zero across the recency window."""
        cfg = self.settings.leads
        if last_contact is None:
            return 0
        days = days_between(last_contact, self.clock())
        freshness = max(0.0, 1 - safe_ratio(days, cfg.recency_window_days))
        return int(clamp(round(cfg.recency_max * freshness), 0, cfg.recency_max))

    # ------------------------------------------------------------ composition

    def classify(self, score: int) -> Temperature:
        cfg = self.settings.leads
        if score >= cfg.hot_cutoff:
            return Temperature.HOT
        if score >= cfg.warm_cutoff:
            return Temperature.WARM
        return Temperature.COLD

    def compose(self, balance: int, engagement: int, recency: int) -> Tuple[int, Temperature]:
        score = int(clamp(round(balance + engagement + recency)))
        return score, self.classify(score)

    def score(self, customer: Customer, lead_context: LeadContext) -> ScoredLead:
        if lead_context.customer_id != customer.id:
            raise ValidationError(
                f"lead {lead_context.id} belongs to {lead_context.customer_id}, not {customer.id}"
            )
        factors = ScoreFactors(
            balance=self.balance_score(customer.balance),
            engagement=self.engagement_score(
                self.engagement.score(customer), lead_context.interest_level
            ),
            recency=self.recency_score(lead_context.last_contact_date),
        )
        score, temperature = self.compose(factors.balance, factors.engagement, factors.recency)

        actions = self.nba_engine.generate(customer, max_actions=1)
        top_action = actions[0] if actions else None

        logger.debug(
            "Lead scored",
            extra={"lead_id": lead_context.id, "score": score, "temperature": temperature.value},
        )
        return ScoredLead(
            lead=lead_context,
            score=score,
            temperature=temperature,
            score_factors=factors,
            next_best_action=top_action,
        )

    # ---------------------------------------------------------------- lead board

    @staticmethod
    def rank(leads: Sequence[ScoredLead]) -> List[ScoredLead]:
        """Score desc, then most recent contact, then lead id."""

        def contact_key(lead: ScoredLead) -> float:
            contact = lead.lead.last_contact_date
            return as_utc(contact).timestamp() if contact else float("-inf")

        return sorted(leads, key=lambda lead: (-lead.score, -contact_key(lead), lead.lead.id))

    @staticmethod
    def temperature_counts(leads: Sequence[ScoredLead]) -> Dict[Temperature, int]:
        counts = {temperature: 0 for temperature in Temperature}
        for lead in leads:
            counts[lead.temperature] += 1
        return counts
