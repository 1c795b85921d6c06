"""
KYC and consent statistics tests.

Run with: pytest tests/unit/test_compliance.py -v
"""

from datetime import timedelta

import pytest
from conftest import NOW, days_ago

from crm_engine.models.customer import (
    AMLFlag,
    KYCLevel,
    KYCRecord,
    MarketingChannel,
    MarketingConsent,
    RiskLevel,
)
from crm_engine.services.compliance_service import ComplianceReporter


@pytest.fixture
def reporter(settings, clock):
    return ComplianceReporter(settings, clock)


class TestKYCStats:
    """KYC level, expiry and risk counts."""

    def test_counts(self, reporter, make_customer):
        customers = [
            make_customer(id="A", kyc_status=KYCRecord(level=KYCLevel.ENHANCED, risk_level=RiskLevel.HIGH)),
            make_customer(
                id="B",
                kyc_status=KYCRecord(
                    level=KYCLevel.STANDARD,
                    expires_at=NOW + timedelta(days=10),
                    aml_flags=[AMLFlag(type="LARGE_CASH", flagged_at=days_ago(5))],
                ),
            ),
            make_customer(
                id="C",
                kyc_status=KYCRecord(
                    level=KYCLevel.BASIC, risk_level=RiskLevel.MEDIUM, expires_at=NOW - timedelta(days=1)
                ),
            ),
            make_customer(id="D", kyc_status=KYCRecord(level=KYCLevel.EXPIRED)),
            make_customer(id="E", kyc_status=None),
        ]
        stats = reporter.kyc_stats(customers)
        assert stats.enhanced == 1
        assert stats.standard == 1
        assert stats.basic == 1
        # C by date, D by level, E has no record
        assert stats.expired == 3
        assert stats.expiring_soon == 1
        assert stats.with_aml_flags == 1
        assert stats.high_risk == 1
        assert stats.medium_risk == 1

    def test_empty_population(self, reporter):
        stats = reporter.kyc_stats([])
        assert stats.expired == 0
        assert stats.enhanced == 0


class TestConsentStats:
    """Eligibility and per-channel counts."""

    def test_counts(self, reporter, make_customer):
        customers = [
            make_customer(id="A", marketing_consent=MarketingConsent(opt_in=True)),
            make_customer(
                id="B",
                marketing_consent=MarketingConsent(
                    opt_in=True, channels=[MarketingChannel.EMAIL, MarketingChannel.SMS]
                ),
            ),
            make_customer(id="C", marketing_consent=MarketingConsent(opt_in=False)),
            make_customer(
                id="D", marketing_consent=MarketingConsent(opt_in=True, expires_at=NOW - timedelta(days=3))
            ),
        ]
        stats = reporter.consent_stats(customers)
        assert stats.total == 4
        assert stats.eligible == 2
        assert stats.ineligible == 2
        assert stats.consent_rate == 50
        assert stats.expired_consent == 1
        assert stats.by_channel == {"email": 2, "sms": 2, "push": 1, "whatsapp": 1}

    def test_empty_population(self, reporter):
        stats = reporter.consent_stats([])
        assert stats.total == 0
        assert stats.consent_rate == 0
