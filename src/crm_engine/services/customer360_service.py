"""
Customer 360 facade.

Wires every component with one settings object, estimator, clock and audit
log, and memoizes per-customer results in an LRU cache. Keys combine the
operation, the customer id and its input version with the clock date and
whether marketing consent is live, so results follow consent expiry and
day-based windows. Every call returns a fresh deep copy of the cached result.
The components themselves stay pure; caching lives only here.
"""

from __future__ import annotations

import hashlib
import time
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel

from crm_engine.config import EngineSettings
from crm_engine.models.action import Channel, NextBestAction
from crm_engine.models.analytics import CustomerProfile
from crm_engine.models.audit import Actor, AuditAction, AuditEvent, AuditLog, AuditResource
from crm_engine.models.customer import Customer
from crm_engine.models.dashboard import DashboardSummary, RuleStats
from crm_engine.models.journey import JourneyEvent
from crm_engine.models.lead import LeadContext, ScoredLead
from crm_engine.models.metrics import CRMMetricsProfile
from crm_engine.repositories.audit_repo import InMemoryAuditRepository
from crm_engine.services.behavior_service import BehaviorAnalyzer
from crm_engine.services.compliance_service import ComplianceReporter
from crm_engine.services.consent import has_live_consent
from crm_engine.services.crm_metrics_service import CRMHealthAggregator
from crm_engine.services.dispatch_service import ActionDispatcher, ChannelSender, DispatchReceipt
from crm_engine.services.engagement_service import EngagementScorer
from crm_engine.services.journey_service import JourneyBuilder
from crm_engine.services.lead_scoring_service import LeadScorer
from crm_engine.services.nba_service import NBAEngine
from crm_engine.services.profile_service import CustomerProfileBuilder
from crm_engine.utils.cache_service import LRUCache
from crm_engine.utils.estimator import Clock, Estimator, SeededEstimator, utc_now
from crm_engine.utils.logging_config import get_logger

logger = get_logger(__name__)


def input_version(customer: Customer) -> str:
    """Caller-supplied version, else a digest of the snapshot contents."""
    if customer.version:
        return customer.version
    return hashlib.sha1(customer.model_dump_json().encode("utf-8")).hexdigest()


def _detached(value: Any) -> Any:
    """Deep copy of a cached result so callers never share mutable state."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, list):
        return [_detached(item) for item in value]
    return value


class Customer360Service:
    """Single entry point for UI collaborators."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        estimator: Optional[Estimator] = None,
        clock: Clock = utc_now,
        audit_log: Optional[AuditLog] = None,
        sender: Optional[ChannelSender] = None,
    ):
        self.settings = (settings or EngineSettings()).validate()
        self.estimator = estimator or SeededEstimator(self.settings.estimator_seed)
        self.clock = clock
        self.audit_log = audit_log if audit_log is not None else InMemoryAuditRepository(clock=clock)

        self.behavior = BehaviorAnalyzer(self.settings)
        self.engagement = EngagementScorer(self.settings)
        self.profiles = CustomerProfileBuilder(self.settings, self.behavior, self.engagement)
        self.metrics = CRMHealthAggregator(self.settings, self.estimator, clock)
        self.nba = NBAEngine(self.settings, self.metrics, clock=clock)
        self.leads = LeadScorer(self.settings, self.engagement, self.nba, clock)
        self.journeys = JourneyBuilder(self.settings, self.estimator, clock)
        self.compliance = ComplianceReporter(self.settings, clock)
        self.dispatcher = ActionDispatcher(self.settings, self.audit_log, sender, clock)
        self.cache = LRUCache(
            max_size=self.settings.cache.max_size, ttl_seconds=self.settings.cache.ttl_seconds
        )

    @classmethod
    def from_environment(cls, **kwargs: Any) -> "Customer360Service":
        return cls(settings=EngineSettings.from_environment(), **kwargs)

    def cache_key(self, operation: str, customer: Customer) -> tuple:
        now = self.clock()
        as_of = (now.date().isoformat(), has_live_consent(customer.marketing_consent, now))
        return (operation, customer.id, input_version(customer), as_of)

    def _cached(self, operation: str, customer: Customer, compute: Callable[[], Any]) -> Any:
        return _detached(self.cache.get_or_compute(self.cache_key(operation, customer), compute))

    # ----------------------------------------------------------- per customer

    def customer_profile(self, customer: Customer) -> CustomerProfile:
        return self._cached("customer_profile", customer, lambda: self.profiles.build(customer))

    def crm_profile(self, customer: Customer) -> CRMMetricsProfile:
        return self._cached("crm_profile", customer, lambda: self.metrics.build_profile(customer))

    def next_best_actions(
        self, customer: Customer, max_actions: Optional[int] = None
    ) -> List[NextBestAction]:
        limit = self.settings.nba.default_max_actions if max_actions is None else max_actions
        return self._cached(
            f"next_best_actions:{limit}",
            customer,
            lambda: self.nba.generate(customer, self.crm_profile(customer), limit),
        )

    def score_lead(self, customer: Customer, lead: LeadContext) -> ScoredLead:
        lead_digest = hashlib.sha1(lead.model_dump_json().encode("utf-8")).hexdigest()
        return self._cached(
            f"score_lead:{lead_digest}", customer, lambda: self.leads.score(customer, lead)
        )

    def journey(self, customer: Customer) -> List[JourneyEvent]:
        return self._cached("journey", customer, lambda: self.journeys.build(customer))

    # -------------------------------------------------------------- population

    def rank_leads(self, pairs: Sequence[tuple]) -> List[ScoredLead]:
        """Score ``(customer, lead)`` pairs and order them for the lead board."""
        return self.leads.rank([self.score_lead(customer, lead) for customer, lead in pairs])

    def dashboard(self, customers: Sequence[Customer]) -> DashboardSummary:
        started = time.perf_counter()
        profiles = [self.crm_profile(c) for c in customers]
        summary = DashboardSummary(
            aggregate=self.metrics.aggregate_profiles(profiles),
            nba_stats={
                rule_id: RuleStats(count=int(entry["count"]), total_revenue=entry["total_revenue"])
                for rule_id, entry in self.nba.nba_stats(customers).items()
            },
            kyc=self.compliance.kyc_stats(customers),
            consent=self.compliance.consent_stats(customers),
        )
        summary.latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Dashboard built",
            extra={"customer_count": len(customers), "latency_ms": summary.latency_ms},
        )
        return summary

    # ----------------------------------------------------------------- actions

    def executable_channels(self, customer: Customer, action: NextBestAction) -> List[Channel]:
        return self.dispatcher.executable_channels(customer, action)

    def execute_action(
        self,
        customer: Customer,
        action_id: str,
        channel: Channel,
        actor: Optional[Actor] = None,
    ) -> DispatchReceipt:
        """Run one of the customer's current recommendations through a channel."""
        actions = self.nba.generate(customer, self.crm_profile(customer), len(self.nba.rules))
        action = self.dispatcher.find_action(actions, action_id)
        return self.dispatcher.execute(customer, action, channel, actor)

    def record_view(self, customer: Customer, actor: Optional[Actor] = None) -> AuditEvent:
        details = {"customer_name": customer.name, "segment": customer.segment.value}
        if actor is not None:
            details["actor"] = actor.model_dump()
        return self.audit_log.log(
            AuditAction.VIEW, AuditResource.CUSTOMER, details, resource_id=customer.id
        )
