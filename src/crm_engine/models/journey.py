"""Customer journey timeline models."""

import datetime
from enum import Enum

from pydantic import BaseModel


class JourneyEventType(str, Enum):
    ACCOUNT_CREATED = "account_created"
    FIRST_TRANSACTION = "first_transaction"
    SEGMENT_CHANGE = "segment_change"
    REWARD_REDEEMED = "reward_redeemed"
    CAMPAIGN_CONVERTED = "campaign_converted"
    MILESTONE = "milestone"
    CURRENT_STATUS = "current_status"


class JourneyEvent(BaseModel):
    id: str
    date: datetime.date
    type: JourneyEventType
    title: str
    description: str
    icon: str = ""
