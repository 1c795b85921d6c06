"""Customer snapshot models consumed by the engine (read-only)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Segment(str, Enum):
    """RFM segments."""

    CHAMPIONS = "Champions"
    LOYAL = "Loyal"
    POTENTIAL = "Potential"
    AT_RISK = "At Risk"
    HIBERNATING = "Hibernating"


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    PREMIUM = "Premium"
    NEW = "New"
    DORMANT = "Dormant"


class PreferredChannel(str, Enum):
    MOBILE_APP = "Mobile App"
    ATM = "ATM"
    WEB = "Web"
    BRANCH = "Branch"


class MarketingChannel(str, Enum):
    """Channels a marketing consent record can approve."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WHATSAPP = "whatsapp"


class InteractionType(str, Enum):
    VIEW = "view"
    CLICK = "click"
    CONVERT = "convert"
    IGNORE = "ignore"


class TransferType(str, Enum):
    TOP_UP = "top_up"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"


class TransferMethod(str, Enum):
    INTRA_BANK = "intra_bank"
    INTER_BANK = "inter_bank"
    E_WALLET = "e_wallet"


class KYCLevel(str, Enum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    ENHANCED = "ENHANCED"
    EXPIRED = "EXPIRED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Snapshot(BaseModel):
    """Base for input models: immutable once built."""

    model_config = ConfigDict(frozen=True)


class Transaction(Snapshot):
    """Historical transaction fact."""

    id: str
    amount: float
    date: datetime
    category: str
    merchant: str = ""
    subcategory: Optional[str] = None
    provider: Optional[str] = None
    is_recurring: bool = False
    bill_number: Optional[str] = None
    transfer_type: Optional[TransferType] = None
    transfer_method: Optional[TransferMethod] = None
    transfer_fee: Optional[float] = None


class Badge(Snapshot):
    id: str
    name: str
    unlocked: bool = False
    progress: int = 0
    max_progress: int = 1


class CampaignInteraction(Snapshot):
    """How a customer reacted to a campaign touch."""

    id: str
    campaign_id: str
    campaign_title: str = ""
    interaction_type: InteractionType
    timestamp: datetime
    conversion_amount: Optional[float] = None


class ServiceInteraction(Snapshot):
    """Support contact (call, chat, email or ticket)."""

    id: str
    type: str = Field(description="call|chat|email|ticket")
    subject: str = ""
    status: str = Field(default="open", description="open|in_progress|resolved")
    timestamp: datetime
    channel: str = ""


class MarketingConsent(Snapshot):
    """Marketing consent record sourced by the compliance collaborator."""

    opt_in: bool = False
    last_updated: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    channels: Optional[List[MarketingChannel]] = None
    consent_source: Optional[str] = None


class AMLFlag(Snapshot):
    type: str
    flagged_at: datetime
    description: str = ""
    status: str = Field(default="PENDING_REVIEW", description="PENDING_REVIEW|CLEARED|ESCALATED")


class KYCRecord(Snapshot):
    level: KYCLevel
    risk_level: RiskLevel = RiskLevel.LOW
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    verification_method: Optional[str] = None
    aml_flags: List[AMLFlag] = Field(default_factory=list)


class RewardRedemption(Snapshot):
    id: str
    reward_name: str
    points_used: int
    redeemed_at: datetime
    status: str = "claimed"


class Customer(Snapshot):
    """Customer snapshot owned by the calling application."""

    id: str
    name: str
    segment: Segment
    balance: float = 0.0
    points: int = 0
    level: int = 0
    xp: float = Field(default=0.0, description="Experience toward next level, percent")
    badges: List[Badge] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)
    campaign_history: List[CampaignInteraction] = Field(default_factory=list)
    interactions: List[ServiceInteraction] = Field(default_factory=list)
    reward_history: List[RewardRedemption] = Field(default_factory=list)
    marketing_consent: Optional[MarketingConsent] = None
    kyc_status: Optional[KYCRecord] = None

    age: Optional[int] = None
    account_status: Optional[AccountStatus] = None
    preferred_channel: Optional[PreferredChannel] = None
    account_created_date: Optional[datetime] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    occupation: Optional[str] = None
    gender: Optional[str] = None

    version: Optional[str] = Field(
        default=None, description="Caller-supplied input version used as a cache key"
    )
