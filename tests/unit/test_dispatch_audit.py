"""
Action dispatch and audit trail tests.

Run with: pytest tests/unit/test_dispatch_audit.py -v
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from conftest import NOW

from crm_engine.models.action import ActionCategory, Channel, NextBestAction, Priority
from crm_engine.models.audit import Actor, AuditAction, AuditResource
from crm_engine.repositories.audit_repo import InMemoryAuditRepository, LoggingAuditRepository
from crm_engine.services.dispatch_service import ActionDispatcher, SimulatedChannelSender
from crm_engine.utils.error_handling import ConsentViolationError, NotFoundError, ValidationError
from crm_engine.utils.estimator import fixed_clock


@pytest.fixture
def audit_log(clock):
    return InMemoryAuditRepository(clock=clock)


@pytest.fixture
def dispatcher(settings, audit_log, clock):
    return ActionDispatcher(settings, audit_log, clock=clock)


@pytest.fixture
def action():
    return NextBestAction(
        id="nba-DEPOSIT_CROSS_SELL-C200",
        rule_id="DEPOSIT_CROSS_SELL",
        title="Offer a Time Deposit",
        category=ActionCategory.CROSS_SELL,
        priority=Priority.MEDIUM,
        confidence=85,
        expected_revenue=2_500_000,
        short_reason="Idle balance",
        channels=[Channel.PHONE_CALL, Channel.EMAIL],
    )


class TestDispatchConsent:
    """Marketing dispatch requires live consent."""

    def test_refused_without_consent(self, dispatcher, audit_log, opted_out, action):
        with pytest.raises(ConsentViolationError) as exc_info:
            dispatcher.execute(opted_out, action, Channel.EMAIL)
        assert exc_info.value.code == "consent_required"

        events = audit_log.get_logs()
        assert len(events) == 1
        assert events[0].action is AuditAction.NBA_EXECUTED
        assert events[0].resource_type is AuditResource.CONSENT
        assert events[0].details["phase"] == "refused"

    def test_sender_not_called_when_refused(self, settings, audit_log, clock, opted_out, action):
        sender = MagicMock()
        dispatcher = ActionDispatcher(settings, audit_log, sender, clock)
        with pytest.raises(ConsentViolationError):
            dispatcher.execute(opted_out, action, Channel.EMAIL)
        sender.send.assert_not_called()

    def test_executable_channels(self, dispatcher, opted_out, champion, action):
        assert dispatcher.executable_channels(opted_out, action) == [Channel.PHONE_CALL]
        assert dispatcher.executable_channels(champion, action) == [Channel.PHONE_CALL, Channel.EMAIL]


class TestDispatchAudit:
    """Every execution is audited before and after sending."""

    def test_phone_call_audited_twice(self, dispatcher, audit_log, opted_out, action):
        receipt = dispatcher.execute(opted_out, action, Channel.PHONE_CALL)

        assert receipt.channel is Channel.PHONE_CALL
        assert receipt.dispatched_at == NOW
        assert "Calling Andi Wijaya" in receipt.message

        events = audit_log.get_logs()
        assert [e.details["phase"] for e in events] == ["dispatched", "requested"]
        assert all(e.action is AuditAction.NBA_EXECUTED for e in events)
        assert receipt.audit_event_ids == [events[1].id, events[0].id]

    def test_marketing_dispatch_logged_as_campaign(self, dispatcher, audit_log, champion, action):
        dispatcher.execute(champion, action, "Email")
        latest = audit_log.recent(1)[0]
        assert latest.action is AuditAction.CAMPAIGN_EXECUTE
        assert latest.resource_type is AuditResource.CAMPAIGN
        assert latest.details["channel"] == "Email"

    def test_actor_recorded(self, dispatcher, audit_log, champion, action):
        actor = Actor(id="u-7", name="Rina", role="Relationship Manager")
        dispatcher.execute(champion, action, Channel.PHONE_CALL, actor=actor)
        assert audit_log.get_logs()[0].details["actor"]["id"] == "u-7"

    def test_sender_failure_audited_and_raised(self, settings, audit_log, clock, champion, action):
        sender = MagicMock()
        sender.send.side_effect = RuntimeError("gateway down")
        dispatcher = ActionDispatcher(settings, audit_log, sender, clock)

        with pytest.raises(RuntimeError):
            dispatcher.execute(champion, action, Channel.PHONE_CALL)
        assert [e.details["phase"] for e in audit_log.get_logs()] == ["failed", "requested"]

    def test_unknown_channel_rejected(self, dispatcher, champion, action):
        with pytest.raises(ValidationError):
            dispatcher.execute(champion, action, "Fax")

    def test_channel_not_offered_rejected(self, dispatcher, champion, action):
        with pytest.raises(ValidationError):
            dispatcher.execute(champion, action, Channel.BRANCH_VISIT)

    def test_find_action(self, action):
        assert ActionDispatcher.find_action([action], action.id) is action
        with pytest.raises(NotFoundError):
            ActionDispatcher.find_action([action], "nba-missing")


class TestSimulatedSender:
    """Message previews per channel."""

    @pytest.mark.parametrize("channel,fragment", [
        (Channel.PHONE_CALL, "Calling"),
        (Channel.EMAIL, "Email sent to"),
        (Channel.WHATSAPP, "WhatsApp sent to"),
        (Channel.SMS, "SMS sent to"),
        (Channel.PUSH, "Push notification"),
        (Channel.BRANCH_VISIT, "Branch visit"),
        (Channel.MOBILE_APP, "In-app message"),
    ])
    def test_message_per_channel(self, champion, action, channel, fragment):
        assert fragment in SimulatedChannelSender().send(champion, action, channel)


class TestInMemoryAuditRepository:
    """Audit trail storage and queries."""

    def test_newest_first_and_bounded(self, clock):
        repo = InMemoryAuditRepository(max_logs=3, clock=clock)
        for i in range(5):
            repo.log(AuditAction.VIEW, AuditResource.CUSTOMER, {"n": i}, resource_id=f"C{i}")
        logs = repo.get_logs()
        assert [e.details["n"] for e in logs] == [4, 3, 2]

    def test_filters(self):
        moments = iter([NOW - timedelta(days=2), NOW - timedelta(days=1), NOW])
        repo = InMemoryAuditRepository(clock=lambda: next(moments))
        repo.log(AuditAction.VIEW, AuditResource.CUSTOMER, {})
        repo.set_actor(Actor(id="u-1", name="Rina", role="Admin"))
        repo.log(AuditAction.EXPORT, AuditResource.REPORT, {})
        repo.log(AuditAction.VIEW, AuditResource.LEAD, {})

        assert len(repo.get_logs(action=AuditAction.VIEW)) == 2
        assert len(repo.get_logs(resource_type=AuditResource.REPORT)) == 1
        assert len(repo.get_logs(actor_id="u-1")) == 2
        assert len(repo.get_logs(date_from=NOW - timedelta(days=1))) == 2
        assert len(repo.get_logs(date_to=NOW - timedelta(days=1))) == 2
        assert repo.action_counts() == {AuditAction.VIEW: 2, AuditAction.EXPORT: 1}

    def test_default_actor_is_system(self, audit_log):
        event = audit_log.log(AuditAction.VIEW, AuditResource.SYSTEM, {})
        assert event.actor_id == "system"
        assert event.id.startswith("audit_")

    def test_export_and_clear(self, audit_log):
        audit_log.log(AuditAction.VIEW, AuditResource.CUSTOMER, {"k": "v"}, resource_id="C1")
        exported = json.loads(audit_log.export_json())
        assert exported[0]["resource_id"] == "C1"
        assert exported[0]["action"] == "VIEW"
        audit_log.clear()
        assert audit_log.get_logs() == []

    def test_logging_repository_emits_event(self):
        repo = LoggingAuditRepository(clock=fixed_clock(NOW))
        event = repo.log(AuditAction.NBA_EXECUTED, AuditResource.NEXT_BEST_ACTION, {"phase": "requested"})
        assert event.timestamp == NOW
