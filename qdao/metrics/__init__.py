"""
QDAO Metrics Module

Prometheus-compatible metrics for monitoring a governance engine.
"""

from .collector import (
    Counter,
    Gauge,
    GovernanceMetrics,
    MetricsRegistry,
)

__all__ = [
    "Counter",
    "Gauge",
    "GovernanceMetrics",
    "MetricsRegistry",
]
