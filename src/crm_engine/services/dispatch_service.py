"""
Action dispatch.

Executes a recommended action through one of its channels. Every execution
is reported to the audit log before and after the send, and a marketing
channel without live consent is refused outright.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, Field

from crm_engine.config import EngineSettings
from crm_engine.models.action import Channel, NextBestAction
from crm_engine.models.audit import Actor, AuditAction, AuditLog, AuditResource
from crm_engine.models.customer import Customer
from crm_engine.repositories.audit_repo import InMemoryAuditRepository
from crm_engine.services.consent import gate_channels
from crm_engine.utils.error_handling import ConsentViolationError, NotFoundError, ValidationError
from crm_engine.utils.estimator import Clock, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import ensure_present

logger = get_logger(__name__)


class DispatchReceipt(BaseModel):
    action_id: str
    rule_id: str
    customer_id: str
    channel: Channel
    message: str
    dispatched_at: datetime
    audit_event_ids: List[str] = Field(default_factory=list)


class ChannelSender(Protocol):
    """Delivers an action to a customer over one channel and returns what was sent."""

    def send(self, customer: Customer, action: NextBestAction, channel: Channel) -> str:
        ...


class SimulatedChannelSender:
    """Builds the message a real sender would deliver, without delivering it."""

    def send(self, customer: Customer, action: NextBestAction, channel: Channel) -> str:
        first_name = customer.name.split(" ")[0] if customer.name else "there"
        if channel is Channel.PHONE_CALL:
            return (
                f"Calling {customer.name}. Topic: {action.title}. "
                f'Script: "Good morning {first_name}, we would like to offer you {action.title}..."'
            )
        if channel is Channel.EMAIL:
            return (
                f"Email sent to {customer.email or 'unknown'}. "
                f"Subject: Special Offer - {action.title}"
            )
        if channel is Channel.WHATSAPP:
            return f"WhatsApp sent to {customer.phone or 'unknown'}. Template: {action.title}"
        if channel is Channel.SMS:
            return f"SMS sent to {customer.phone or 'unknown'}: {action.short_reason}"
        if channel is Channel.PUSH:
            return f"Push notification queued for {customer.id}: {action.title}"
        if channel is Channel.BRANCH_VISIT:
            return f"Branch visit scheduled for {customer.name}: {action.title}"
        return f"In-app message queued for {customer.id}: {action.title}"


class ActionDispatcher:
    """Consent-checked, audited execution of recommended actions."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        audit_log: Optional[AuditLog] = None,
        sender: Optional[ChannelSender] = None,
        clock: Clock = utc_now,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.audit_log = audit_log if audit_log is not None else InMemoryAuditRepository(clock=clock)
        self.sender = sender or SimulatedChannelSender()
        self.clock = clock

    def executable_channels(self, customer: Customer, action: NextBestAction) -> List[Channel]:
        """Channels the UI may enable for this action right now."""
        return gate_channels(
            action.channels,
            consent=customer.marketing_consent,
            now=self.clock(),
            marketing_channels=self.settings.nba.marketing_channels,
        )

    @staticmethod
    def find_action(actions: Sequence[NextBestAction], action_id: str) -> NextBestAction:
        ensure_present(action_id, "action_id")
        for action in actions:
            if action.id == action_id:
                return action
        raise NotFoundError(f"Action {action_id} not found")

    def execute(
        self,
        customer: Customer,
        action: NextBestAction,
        channel: Union[Channel, str],
        actor: Optional[Actor] = None,
    ) -> DispatchReceipt:
        try:
            channel = Channel(channel)
        except ValueError:
            raise ValidationError(f"Unknown channel: {channel}") from None
        if channel not in action.channels:
            raise ValidationError(f"Channel {channel.value} is not offered by action {action.id}")

        details: Dict[str, Any] = {
            "nba_id": action.id,
            "rule_id": action.rule_id,
            "nba_title": action.title,
            "customer_id": customer.id,
            "customer_name": customer.name,
            "channel": channel.value,
            "expected_revenue": action.expected_revenue,
        }
        if actor is not None:
            details["actor"] = actor.model_dump()

        if channel not in self.executable_channels(customer, action):
            self.audit_log.log(
                AuditAction.NBA_EXECUTED,
                AuditResource.CONSENT,
                {**details, "phase": "refused", "reason": "marketing consent required"},
                resource_id=customer.id,
            )
            logger.warning(
                "Dispatch refused without marketing consent",
                extra={"customer_id": customer.id, "rule_id": action.rule_id, "channel": channel.value},
            )
            raise ConsentViolationError(
                f"Customer {customer.id} has not consented to {channel.value} marketing"
            )

        requested = self.audit_log.log(
            AuditAction.NBA_EXECUTED,
            AuditResource.NEXT_BEST_ACTION,
            {**details, "phase": "requested"},
            resource_id=action.id,
        )
        try:
            message = self.sender.send(customer, action, channel)
        except Exception:
            self.audit_log.log(
                AuditAction.NBA_EXECUTED,
                AuditResource.NEXT_BEST_ACTION,
                {**details, "phase": "failed"},
                resource_id=action.id,
            )
            logger.exception(
                "Dispatch failed", extra={"customer_id": customer.id, "rule_id": action.rule_id}
            )
            raise

        if channel in self.settings.nba.marketing_channels:
            done = self.audit_log.log(
                AuditAction.CAMPAIGN_EXECUTE,
                AuditResource.CAMPAIGN,
                {**details, "phase": "dispatched", "message": message},
                resource_id=action.id,
            )
        else:
            done = self.audit_log.log(
                AuditAction.NBA_EXECUTED,
                AuditResource.NEXT_BEST_ACTION,
                {**details, "phase": "dispatched", "message": message},
                resource_id=action.id,
            )

        logger.info(
            "Action dispatched",
            extra={"customer_id": customer.id, "rule_id": action.rule_id, "channel": channel.value},
        )
        return DispatchReceipt(
            action_id=action.id,
            rule_id=action.rule_id,
            customer_id=customer.id,
            channel=channel,
            message=message,
            dispatched_at=self.clock(),
            audit_event_ids=[requested.id, done.id],
        )
