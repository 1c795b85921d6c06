"""Customer 360 profile assembly."""

from __future__ import annotations

from typing import Optional, Sequence

from crm_engine.config import EngineSettings
from crm_engine.models.analytics import CampaignResponse, CustomerProfile
from crm_engine.models.customer import CampaignInteraction, Customer, InteractionType, Segment
from crm_engine.services.behavior_service import BehaviorAnalyzer
from crm_engine.services.engagement_service import EngagementScorer
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import clamp_pct, safe_ratio

logger = get_logger(__name__)

SEGMENT_PLAYBOOK = {
    Segment.CHAMPIONS: "Offer premium investment products or an exclusive credit card upgrade",
    Segment.LOYAL: "Send loyalty rewards or personalized cashback offers",
    Segment.POTENTIAL: "Send gamified challenges to increase transaction frequency",
    Segment.AT_RISK: "Launch a winback campaign with special offers or cashback",
    Segment.HIBERNATING: "Send a reactivation bonus or fee waiver to restart activity",
}
DEFAULT_PLAY = "Monitor customer behavior and plan targeted engagement"


def campaign_response(history: Sequence[CampaignInteraction]) -> CampaignResponse:
    """Share of campaign touches that got any reaction other than ignore."""
    if not history:
        return CampaignResponse()
    responded = sum(1 for c in history if c.interaction_type is not InteractionType.IGNORE)
    conversions = sum(1 for c in history if c.interaction_type is InteractionType.CONVERT)
    return CampaignResponse(
        response_rate=clamp_pct(safe_ratio(responded, len(history)) * 100),
        total_received=len(history),
        total_conversions=conversions,
    )


class CustomerProfileBuilder:
    """Builds the Customer 360 record from a snapshot."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        behavior: Optional[BehaviorAnalyzer] = None,
        engagement: Optional[EngagementScorer] = None,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.behavior = behavior or BehaviorAnalyzer(self.settings)
        self.engagement = engagement or EngagementScorer(self.settings)

    def build(self, customer: Customer) -> CustomerProfile:
        profile = CustomerProfile(
            customer_id=customer.id,
            behavior=self.behavior.analyze(customer.transactions),
            engagement=self.engagement.metrics(customer),
            campaign_response=campaign_response(customer.campaign_history),
            utility=self.behavior.utility(customer.transactions),
            transfers=self.behavior.transfer(customer.transactions),
            recommended_next_action=self.recommended_action(customer),
        )
        logger.debug("Customer profile built", extra={"customer_id": customer.id})
        return profile

    @staticmethod
    def recommended_action(customer: Customer) -> str:
        """Segment playbook line shown next to the profile."""
        return SEGMENT_PLAYBOOK.get(customer.segment, DEFAULT_PLAY)
