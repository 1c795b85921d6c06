"""Audit contract shared by the dispatcher and the audit repositories."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    VIEW = "VIEW"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    EXPORT = "EXPORT"
    SEARCH = "SEARCH"
    ROLE_CHANGE = "ROLE_CHANGE"
    MFA_VERIFY = "MFA_VERIFY"
    CONSENT_CHANGE = "CONSENT_CHANGE"
    CAMPAIGN_EXECUTE = "CAMPAIGN_EXECUTE"
    NBA_EXECUTED = "NBA_EXECUTED"


class AuditResource(str, Enum):
    CUSTOMER = "Customer"
    CAMPAIGN = "Campaign"
    LEAD = "Lead"
    CONSENT = "Consent"
    NEXT_BEST_ACTION = "NextBestAction"
    REPORT = "Report"
    SYSTEM = "System"


class Actor(BaseModel):
    """Who performed the audited action."""

    id: str = "system"
    name: str = "System"
    role: str = "System"


class AuditEvent(BaseModel):
    id: str
    timestamp: datetime
    actor_id: str
    actor_name: str
    actor_role: str
    action: AuditAction
    resource_type: AuditResource
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditLog(Protocol):
    """Port every auditable action is reported through."""

    def log(
        self,
        action: AuditAction,
        resource_type: AuditResource,
        details: Dict[str, Any],
        resource_id: Optional[str] = None,
    ) -> AuditEvent:
        ...
