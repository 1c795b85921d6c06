"""Audit log adapters."""

from crm_engine.repositories.audit_repo import (  # noqa: F401
    InMemoryAuditRepository,
    LoggingAuditRepository,
)
