"""Audit log adapters."""

from __future__ import annotations

import json
import uuid
from collections import Counter
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, Optional

from crm_engine.models.audit import Actor, AuditAction, AuditEvent, AuditResource
from crm_engine.utils.estimator import Clock, utc_now
from crm_engine.utils.logging_config import get_logger
from crm_engine.utils.validators import as_utc

logger = get_logger(__name__)


class BaseAuditRepository:
    """Stamps events with an id, the clock time and the current actor."""

    def __init__(self, actor: Optional[Actor] = None, clock: Clock = utc_now):
        self.actor = actor or Actor()
        self.clock = clock

    def set_actor(self, actor: Actor) -> None:
        """Switch the actor recorded on subsequent events."""
        self.actor = actor

    def log(
        self,
        action: AuditAction,
        resource_type: AuditResource,
        details: Dict[str, Any],
        resource_id: Optional[str] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            id=f"audit_{uuid.uuid4().hex[:12]}",
            timestamp=self.clock(),
            actor_id=self.actor.id,
            actor_name=self.actor.name,
            actor_role=self.actor.role,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=dict(details),
        )
        self._store(event)
        return event

    def _store(self, event: AuditEvent) -> None:
        raise NotImplementedError


class InMemoryAuditRepository(BaseAuditRepository):
    """Bounded audit trail kept newest first."""

    def __init__(self, max_logs: int = 1000, actor: Optional[Actor] = None, clock: Clock = utc_now):
        super().__init__(actor, clock)
        self.max_logs = max_logs
        self._logs: List[AuditEvent] = []
        self._lock = Lock()

    def _store(self, event: AuditEvent) -> None:
        with self._lock:
            self._logs.insert(0, event)
            del self._logs[self.max_logs:]

    def get_logs(
        self,
        action: Optional[AuditAction] = None,
        resource_type: Optional[AuditResource] = None,
        actor_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Filtered events, newest first. Date bounds are inclusive."""
        with self._lock:
            logs = list(self._logs)
        if action is not None:
            logs = [e for e in logs if e.action == action]
        if resource_type is not None:
            logs = [e for e in logs if e.resource_type == resource_type]
        if actor_id is not None:
            logs = [e for e in logs if e.actor_id == actor_id]
        if date_from is not None:
            logs = [e for e in logs if as_utc(e.timestamp) >= as_utc(date_from)]
        if date_to is not None:
            logs = [e for e in logs if as_utc(e.timestamp) <= as_utc(date_to)]
        return logs

    def action_counts(self) -> Dict[AuditAction, int]:
        with self._lock:
            return dict(Counter(e.action for e in self._logs))

    def recent(self, count: int = 10) -> List[AuditEvent]:
        with self._lock:
            return self._logs[:count]

    def export_json(self) -> str:
        with self._lock:
            payload = [e.model_dump(mode="json") for e in self._logs]
        return json.dumps(payload, indent=2)

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()


class LoggingAuditRepository(BaseAuditRepository):
    """Writes every audit event through the structured JSON logger."""

    def _store(self, event: AuditEvent) -> None:
        logger.info("audit", extra={"audit": event.model_dump(mode="json")})
