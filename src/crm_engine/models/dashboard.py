"""Population dashboard summary."""

from typing import Dict

from pydantic import BaseModel, Field

from crm_engine.models.compliance import ConsentStats, KYCStats
from crm_engine.models.metrics import AggregateMetrics


class RuleStats(BaseModel):
    count: int = 0
    total_revenue: float = 0


class DashboardSummary(BaseModel):
    aggregate: AggregateMetrics
    nba_stats: Dict[str, RuleStats] = Field(default_factory=dict)
    kyc: KYCStats
    consent: ConsentStats
    latency_ms: int = 0
