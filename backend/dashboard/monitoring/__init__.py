from dashboard.monitoring.metrics import MetricObservation, MetricsRegistry
from dashboard.monitoring.rolling import RollingStatsAggregator, StatsSnapshot
from dashboard.monitoring.stats import compute_stats, get_stats

__all__ = [
    "MetricObservation",
    "MetricsRegistry",
    "RollingStatsAggregator",
    "StatsSnapshot",
    "compute_stats",
    "get_stats",
]
