"""KYC and marketing consent statistics for compliance dashboards."""

from __future__ import annotations

from typing import Optional, Sequence

from crm_engine.config import EngineSettings
from crm_engine.models.compliance import ConsentStats, KYCStats
from crm_engine.models.customer import Customer, KYCLevel, MarketingChannel, RiskLevel
from crm_engine.services.consent import consent_expired, has_live_consent
from crm_engine.utils.estimator import Clock, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc, clamp_pct, safe_ratio

logger = get_logger(__name__)

EXPIRING_SOON_DAYS = 30


class ComplianceReporter:
    """Counts KYC and consent states across a customer population."""

    def __init__(self, settings: Optional[EngineSettings] = None, clock: Clock = utc_now):
        self.settings = (settings or EngineSettings()).validate()
        self.clock = clock

    def kyc_stats(self, customers: Sequence[Customer]) -> KYCStats:
        """A customer without a KYC record counts as expired."""
        now = as_utc(self.clock())
        stats = KYCStats()
        for customer in customers:
            kyc = customer.kyc_status
            if kyc is None:
                stats.expired += 1
                continue

            if kyc.level is KYCLevel.ENHANCED:
                stats.enhanced += 1
            elif kyc.level is KYCLevel.STANDARD:
                stats.standard += 1
            elif kyc.level is KYCLevel.BASIC:
                stats.basic += 1

            expires = as_utc(kyc.expires_at) if kyc.expires_at else None
            if kyc.level is KYCLevel.EXPIRED or (expires is not None and expires < now):
                stats.expired += 1
            elif expires is not None and (expires - now).days < EXPIRING_SOON_DAYS:
                stats.expiring_soon += 1

            if kyc.aml_flags:
                stats.with_aml_flags += 1
            if kyc.risk_level is RiskLevel.HIGH:
                stats.high_risk += 1
            elif kyc.risk_level is RiskLevel.MEDIUM:
                stats.medium_risk += 1
        return stats

    def consent_stats(self, customers: Sequence[Customer]) -> ConsentStats:
        """Eligible means live consent: opted in and not expired."""
        now = self.clock()
        eligible = [c for c in customers if has_live_consent(c.marketing_consent, now)]

        by_channel = {channel.value: 0 for channel in MarketingChannel}
        for customer in eligible:
            approved = customer.marketing_consent.channels
            for channel in MarketingChannel if approved is None else set(approved):
                by_channel[channel.value] += 1

        stats = ConsentStats(
            total=len(customers),
            eligible=len(eligible),
            ineligible=len(customers) - len(eligible),
            consent_rate=clamp_pct(safe_ratio(len(eligible), len(customers)) * 100),
            by_channel=by_channel,
            expired_consent=sum(1 for c in customers if consent_expired(c.marketing_consent, now)),
        )
        logger.debug("Consent stats computed", extra={"total": stats.total, "eligible": stats.eligible})
        return stats
