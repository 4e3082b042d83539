"""
QDAO Prometheus Metrics Collector

Pure-Python Prometheus exposition format implementation. We generate the
text format ourselves so the engine has no extra requirements.

Metric types:
    - Counter: monotonically increasing (e.g. votes_cast_total)
    - Gauge: can go up and down (e.g. member_count)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Metric primitives
# ---------------------------------------------------------------------------

@dataclass
class Counter:
    """Monotonically increasing counter."""
    name: str
    help: str = ""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Counter can only be incremented")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} counter")
        lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


@dataclass
class Gauge:
    """Gauge that can go up and down."""
    name: str
    help: str = ""
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> float:
        return self._value

    def expose(self) -> str:
        lines = []
        if self.help:
            lines.append(f"# HELP {self.name} {self.help}")
        lines.append(f"# TYPE {self.name} gauge")
        lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class MetricsRegistry:
    """
    Central registry holding all metrics.

    Provides ``expose()`` to render all metrics in Prometheus text format.
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, metric: Any) -> None:
        """Register a metric (Counter or Gauge)."""
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric already registered: {metric.name}")
            self._metrics[metric.name] = metric

    def get(self, name: str) -> Optional[Any]:
        return self._metrics.get(name)

    @property
    def metric_count(self) -> int:
        return len(self._metrics)

    def expose(self) -> str:
        """Render all registered metrics in Prometheus text format (0.0.4)."""
        parts: List[str] = []
        with self._lock:
            for metric in self._metrics.values():
                parts.append(metric.expose())
        return "\n\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Governance collector, pre-registers standard QDAO metrics
# ---------------------------------------------------------------------------

class GovernanceMetrics:
    """
    Pre-configured metrics for a governance engine.

    Pass an instance to the engine; it updates counters as requests are
    applied. Call ``expose()`` to get the Prometheus endpoint body.
    """

    def __init__(self):
        self.registry = MetricsRegistry()

        # --- Request metrics ---
        self.requests_total = Counter(
            "qdao_requests_total",
            "Total state-transition requests received",
        )
        self.requests_rejected_total = Counter(
            "qdao_requests_rejected_total",
            "Requests that failed a guard and were rolled back",
        )

        # --- Proposal lifecycle ---
        self.proposals_created_total = Counter(
            "qdao_proposals_created_total",
            "Total proposals created",
        )
        self.votes_cast_total = Counter(
            "qdao_votes_cast_total",
            "Total votes recorded",
        )
        self.proposals_executed_total = Counter(
            "qdao_proposals_executed_total",
            "Proposals whose payout was confirmed",
        )
        self.transfer_failures_total = Counter(
            "qdao_transfer_failures_total",
            "Outgoing transfers that reported failure",
        )

        # --- State gauges ---
        self.member_count = Gauge(
            "qdao_member_count",
            "Current number of members",
        )
        self.proposal_count = Gauge(
            "qdao_proposal_count",
            "Number of proposal ids issued",
        )
        self.treasury_balance = Gauge(
            "qdao_treasury_balance",
            "Funds currently held by the treasury",
        )

        for attr_name in dir(self):
            attr = getattr(self, attr_name)
            if isinstance(attr, (Counter, Gauge)):
                self.registry.register(attr)

    def observe_state(self, member_count: int, proposal_count: int, balance: Any) -> None:
        """Refresh the state gauges."""
        self.member_count.set(member_count)
        self.proposal_count.set(proposal_count)
        self.treasury_balance.set(float(balance))

    def expose(self) -> str:
        return self.registry.expose()
