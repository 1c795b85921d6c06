"""
Pytest configuration and shared fixtures.

Adds src/ to sys.path so ``import crm_engine`` works without an editable
install, and provides a fixed clock, a midpoint estimator and customer
factories so every metric in the tests is reproducible.
"""

import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _ensure_src_on_sys_path() -> None:
    """Add src/ to sys.path if missing."""
    src_root = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_src_on_sys_path()

from crm_engine.config import EngineSettings  # noqa: E402
from crm_engine.models.customer import (  # noqa: E402
    AccountStatus,
    Badge,
    Customer,
    KYCLevel,
    KYCRecord,
    MarketingChannel,
    MarketingConsent,
    PreferredChannel,
    Segment,
    ServiceInteraction,
    Transaction,
)
from crm_engine.utils.estimator import MidpointEstimator, fixed_clock  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
LIFESTYLE_MIX = ("F&B", "Shopping", "Transfer")


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def make_transaction(index: int, age_days: float, amount: float, category: str, **extra) -> Transaction:
    return Transaction(
        id=f"tx-{index:03d}",
        amount=amount,
        date=days_ago(age_days),
        category=category,
        merchant=extra.pop("merchant", f"Merchant {index}"),
        **extra,
    )


def resolved_tickets(count: int = 2):
    return [
        ServiceInteraction(
            id=f"int-{i}",
            type="ticket",
            subject="Card query",
            status="resolved",
            timestamp=days_ago(20 + i),
        )
        for i in range(count)
    ]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def estimator() -> MidpointEstimator:
    return MidpointEstimator()


@pytest.fixture
def make_customer():
    """Factory for a complete, consented Loyal customer; override any field."""

    def factory(**overrides) -> Customer:
        data = dict(
            id="C001",
            name="Budi Santoso",
            segment=Segment.LOYAL,
            balance=10_000_000,
            points=1200,
            level=10,
            xp=40,
            email="budi@example.com",
            phone="+62811000001",
            age=34,
            occupation="Engineer",
            location="Jakarta",
            gender="M",
            account_status=AccountStatus.ACTIVE,
            preferred_channel=PreferredChannel.MOBILE_APP,
            account_created_date=days_ago(800),
            interactions=resolved_tickets(),
            marketing_consent=MarketingConsent(opt_in=True, last_updated=days_ago(30)),
            kyc_status=KYCRecord(
                level=KYCLevel.STANDARD, verified_at=days_ago(300), expires_at=NOW + timedelta(days=400)
            ),
        )
        data.update(overrides)
        return Customer(**data)

    return factory


@pytest.fixture
def champion(make_customer) -> Customer:
    """Opted-in Champion with a Priority-sized balance and steady activity."""
    transactions = [
        make_transaction(i, age_days=5 * i + 1, amount=250_000, category=LIFESTYLE_MIX[i % 3])
        for i in range(12)
    ]
    return make_customer(
        id="C100",
        name="Siti Rahayu",
        segment=Segment.CHAMPIONS,
        balance=150_000_000,
        level=40,
        xp=80,
        age=38,
        badges=[
            Badge(id="b1", name="Saver", unlocked=True),
            Badge(id="b2", name="Spender", unlocked=True),
        ],
        transactions=transactions,
    )


@pytest.fixture
def opted_out(make_customer) -> Customer:
    """At Risk customer who declined marketing."""
    return make_customer(
        id="C200",
        name="Andi Wijaya",
        segment=Segment.AT_RISK,
        balance=60_000_000,
        transactions=[make_transaction(1, age_days=100, amount=150_000, category="F&B")],
        marketing_consent=MarketingConsent(opt_in=False, last_updated=days_ago(10)),
    )


@pytest.fixture
def random_customer():
    """Seeded generator of varied customers for property-style checks."""

    categories = ["F&B", "Shopping", "Utilities", "Recurring Bills", "Transfer", "Entertainment"]

    def factory(seed: int) -> Customer:
        rng = random.Random(seed)
        consent_kind = rng.choice(["none", "out", "in_all", "in_some", "expired"])
        if consent_kind == "none":
            consent = None
        elif consent_kind == "out":
            consent = MarketingConsent(opt_in=False)
        elif consent_kind == "in_all":
            consent = MarketingConsent(opt_in=True)
        elif consent_kind == "in_some":
            consent = MarketingConsent(
                opt_in=True, channels=rng.sample(list(MarketingChannel), rng.randint(0, 3))
            )
        else:
            consent = MarketingConsent(opt_in=True, expires_at=days_ago(rng.randint(1, 60)))

        transactions = [
            make_transaction(
                i,
                age_days=rng.randint(0, 400),
                amount=rng.randint(10_000, 3_000_000),
                category=rng.choice(categories),
                is_recurring=rng.random() < 0.3,
            )
            for i in range(rng.randint(0, 20))
        ]
        return Customer(
            id=f"R{seed:03d}",
            name=f"Customer {seed}",
            segment=rng.choice(list(Segment)),
            balance=rng.choice([0, 5_000_000, 30_000_000, 60_000_000, 250_000_000]),
            level=rng.randint(0, 60),
            xp=rng.randint(0, 100),
            age=rng.choice([None, 19, 30, 52, 70]),
            account_status=rng.choice(list(AccountStatus)),
            preferred_channel=rng.choice(list(PreferredChannel)),
            account_created_date=rng.choice([None, days_ago(rng.randint(1, 1500))]),
            email=rng.choice([None, "", "someone@example.com"]),
            phone="+6281234",
            transactions=transactions,
            marketing_consent=consent,
        )

    return factory
