"""Gamification engagement scoring."""

from __future__ import annotations

from typing import Optional

from crm_engine.config import EngineSettings
from crm_engine.models.analytics import EngagementMetrics
from crm_engine.models.customer import Customer
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc, clamp, clamp_pct, safe_ratio

logger = get_logger(__name__)


class EngagementScorer:
    """
    Consistency score from level, badge completion and experience.

    Each component is capped to its own share before summing so that no
    single dimension can crowd out the others.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = (settings or EngineSettings()).validate()

    def score(self, customer: Customer) -> int:
        cfg = self.settings.engagement

        level_points = clamp(customer.level / cfg.max_level * cfg.level_share, 0, cfg.level_share)

        earned = sum(1 for b in customer.badges if b.unlocked)
        badge_points = clamp(
            safe_ratio(earned, len(customer.badges)) * cfg.badge_share, 0, cfg.badge_share
        )

        xp_points = clamp(customer.xp / 100 * cfg.xp_share, 0, cfg.xp_share)

        return clamp_pct(level_points + badge_points + xp_points)

    def metrics(self, customer: Customer) -> EngagementMetrics:
        earned = sum(1 for b in customer.badges if b.unlocked)
        total = len(customer.badges)
        last_active = (
            max(as_utc(t.date) for t in customer.transactions).date().isoformat()
            if customer.transactions
            else "N/A"
        )
        return EngagementMetrics(
            consistency_score=self.score(customer),
            badges_earned=earned,
            total_badges=total,
            badge_completion_rate=clamp_pct(safe_ratio(earned, total) * 100),
            days_active=max(0, customer.level) * self.settings.engagement.days_per_level,
            last_active_date=last_active,
        )
