"""
Marketing consent helpers.

Every path that could put a marketing channel in front of a customer goes
through these functions. Consent is always a required keyword argument so a
caller cannot forget to pass it.
"""

from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

from crm_engine.models.action import Channel, NextBestAction
from crm_engine.models.customer import MarketingChannel, MarketingConsent
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc

logger = get_logger(__name__)

CONSENT_TO_CHANNEL = {
    MarketingChannel.EMAIL: Channel.EMAIL,
    MarketingChannel.SMS: Channel.SMS,
    MarketingChannel.PUSH: Channel.PUSH,
    MarketingChannel.WHATSAPP: Channel.WHATSAPP,
}

DEFAULT_MARKETING_CHANNELS: FrozenSet[Channel] = frozenset(CONSENT_TO_CHANNEL.values())


def is_opted_in(consent: Optional[MarketingConsent]) -> bool:
    """Raw opt-in flag. A missing record means not opted in."""
    return consent is not None and consent.opt_in


def consent_expired(consent: Optional[MarketingConsent], now: datetime) -> bool:
    return (
        consent is not None
        and consent.expires_at is not None
        and as_utc(consent.expires_at) <= as_utc(now)
    )


def has_live_consent(consent: Optional[MarketingConsent], now: datetime) -> bool:
    """Opted in and not past the consent expiry."""
    return is_opted_in(consent) and not consent_expired(consent, now)


def approved_marketing_channels(
    *,
    consent: Optional[MarketingConsent],
    now: datetime,
    marketing_channels: FrozenSet[Channel] = DEFAULT_MARKETING_CHANNELS,
) -> FrozenSet[Channel]:
    """Marketing channels the customer has approved right now."""
    if not has_live_consent(consent, now):
        return frozenset()
    if consent.channels is None:
        return frozenset(marketing_channels)
    return frozenset(CONSENT_TO_CHANNEL[c] for c in consent.channels) & marketing_channels


def gate_channels(
    channels: Iterable[Channel],
    *,
    consent: Optional[MarketingConsent],
    now: datetime,
    marketing_channels: FrozenSet[Channel] = DEFAULT_MARKETING_CHANNELS,
) -> List[Channel]:
    """Drop marketing channels that consent does not cover, keeping order."""
    approved = approved_marketing_channels(
        consent=consent, now=now, marketing_channels=marketing_channels
    )
    return [c for c in channels if c not in marketing_channels or c in approved]


def apply_consent_gate(
    actions: Iterable[NextBestAction],
    *,
    consent: Optional[MarketingConsent],
    now: datetime,
    marketing_channels: FrozenSet[Channel] = DEFAULT_MARKETING_CHANNELS,
) -> List[NextBestAction]:
    """
    Strip unapproved marketing channels from each action.

    An action left with no channel at all is dropped rather than degraded.
    Confidence and every other field stay untouched.
    """
    gated: List[NextBestAction] = []
    for action in actions:
        channels = gate_channels(
            action.channels, consent=consent, now=now, marketing_channels=marketing_channels
        )
        if not channels:
            logger.debug("Action dropped by consent gate", extra={"rule_id": action.rule_id})
            continue
        if channels != action.channels:
            action = action.model_copy(update={"channels": channels})
        gated.append(action)
    return gated
