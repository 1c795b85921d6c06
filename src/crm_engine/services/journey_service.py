"""Customer journey timeline."""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from crm_engine.config import EngineSettings
from crm_engine.models.customer import Customer, InteractionType, Segment
from crm_engine.models.journey import JourneyEvent, JourneyEventType
from crm_engine.utils.estimator import Clock, Estimator, SeededEstimator, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc

logger = get_logger(__name__)

SEGMENT_ICONS = {Segment.CHAMPIONS: "trophy", Segment.LOYAL: "gem"}


class JourneyBuilder:
    """
    Builds a time-ordered timeline from a customer snapshot.

    The timeline always starts with account creation and ends with a
    current status event. Dates the snapshot does not carry are placed by
    the estimator relative to known dates, and nothing is dated after today.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        estimator: Optional[Estimator] = None,
        clock: Clock = utc_now,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.estimator = estimator or SeededEstimator(self.settings.estimator_seed)
        self.clock = clock

    def build(self, customer: Customer) -> List[JourneyEvent]:
        today = as_utc(self.clock()).date()
        est = self.estimator
        events: List[JourneyEvent] = []

        def add(day: date, kind: JourneyEventType, title: str, description: str, icon: str) -> None:
            events.append(
                JourneyEvent(
                    id=f"{customer.id}-{kind.value}",
                    date=min(max(day, opened), today),
                    type=kind,
                    title=title,
                    description=description,
                    icon=icon,
                )
            )

        if customer.account_created_date is not None:
            opened = as_utc(customer.account_created_date).date()
        else:
            opened = today - timedelta(days=est.randint(customer.id, "journey.opened", 180, 909))
        add(opened, JourneyEventType.ACCOUNT_CREATED, "Account Created",
            "Customer registered and opened an account", "party")

        first_activity = opened
        if customer.transactions:
            first = min(customer.transactions, key=lambda t: (as_utc(t.date), t.id))
            first_activity = as_utc(first.date).date()
            add(first_activity, JourneyEventType.FIRST_TRANSACTION, "First Transaction",
                f"Made a first transaction of {first.amount:,.0f}", "card")

        if customer.level > 5:
            offset = est.randint(customer.id, "journey.milestone", 30, 119)
            add(first_activity + timedelta(days=offset), JourneyEventType.MILESTONE,
                f"Reached Level {customer.level // 2}", "Hit a gamification level milestone", "star")

        if customer.segment in SEGMENT_ICONS:
            changed = today - timedelta(days=est.randint(customer.id, "journey.segment", 30, 209))
            add(max(changed, opened), JourneyEventType.SEGMENT_CHANGE,
                f"Became {customer.segment.value}",
                f"Segment changed to {customer.segment.value}", SEGMENT_ICONS[customer.segment])

        conversions = [
            c for c in customer.campaign_history if c.interaction_type is InteractionType.CONVERT
        ]
        if conversions:
            first_conversion = min(conversions, key=lambda c: (as_utc(c.timestamp), c.id))
            add(as_utc(first_conversion.timestamp).date(), JourneyEventType.CAMPAIGN_CONVERTED,
                "Campaign Conversion",
                f'Responded to campaign "{first_conversion.campaign_title or "Promo"}"', "target")

        if customer.reward_history:
            reward = min(customer.reward_history, key=lambda r: (as_utc(r.redeemed_at), r.id))
            add(as_utc(reward.redeemed_at).date(), JourneyEventType.REWARD_REDEEMED,
                "Reward Redeemed",
                f"Redeemed {reward.points_used:,} points for {reward.reward_name}", "gift")

        add(today, JourneyEventType.CURRENT_STATUS, "Today",
            f"Level {customer.level} | {customer.points:,} points | {customer.segment.value}", "pin")

        # stable, so the current status stays last among same-day events
        events.sort(key=lambda e: e.date)
        logger.debug("Journey built", extra={"customer_id": customer.id, "events": len(events)})
        return events
