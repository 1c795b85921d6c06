"""
Deterministic estimators and clocks.

Metric formulas that lack a real data source (response times, CSAT, demo
fallbacks) draw from an ``Estimator`` instead of global randomness, so the
same customer always yields the same metrics under a given seed.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Callable, Protocol

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns ``moment`` (aware, UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return lambda: moment


class Estimator(Protocol):
    """Source of bounded values for metrics without a live data feed."""

    def uniform(self, customer_id: str, key: str, low: float, high: float) -> float:
        ...

    def randint(self, customer_id: str, key: str, low: int, high: int) -> int:
        ...


class SeededEstimator:
    """Per-(seed, customer, key) pseudo-random values."""

    def __init__(self, seed: int = 0):
        self.seed = seed

    def _rng(self, customer_id: str, key: str) -> random.Random:
        return random.Random(f"{self.seed}:{customer_id}:{key}")

    def uniform(self, customer_id: str, key: str, low: float, high: float) -> float:
        """Float in [low, high)."""
        if high <= low:
            return low
        return self._rng(customer_id, key).uniform(low, high)

    def randint(self, customer_id: str, key: str, low: int, high: int) -> int:
        """Int in [low, high] inclusive."""
        if high <= low:
            return low
        return self._rng(customer_id, key).randint(low, high)


class MidpointEstimator:
    """Always returns the middle of the requested range. Handy in tests."""

    def uniform(self, customer_id: str, key: str, low: float, high: float) -> float:
        return (low + high) / 2

    def randint(self, customer_id: str, key: str, low: int, high: int) -> int:
        return (low + high) // 2
