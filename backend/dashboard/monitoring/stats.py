"""
Derived statistics for GET /api/stats.

Nothing here is stored: every figure is computed from a StatsSnapshot at read
time, so calling the stats path never mutates the aggregator.
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from dashboard.monitoring.models import EndpointStat, StatsResponse
from dashboard.monitoring.rolling import RollingStatsAggregator, StatsSnapshot

DEFAULT_TOP_ENDPOINTS = 6


@dataclass(frozen=True)
class DerivedStats:
    total_requests: int
    requests_per_minute: float
    avg_response_time_ms: float
    uptime_seconds: float
    top_endpoints: list[tuple[str, int]]


def _display_name(endpoint_key: str) -> str:
    """Strip the "<METHOD> " prefix from an endpoint key."""
    _, sep, route = endpoint_key.partition(" ")
    return route if sep else endpoint_key


def average_ms(samples: tuple[float, ...]) -> float:
    if not samples:
        return 0.0
    return sum(samples) / len(samples)


def requests_per_minute(total_requests: int, uptime_seconds: float) -> float:
    uptime_minutes = uptime_seconds / 60
    if uptime_minutes <= 0:
        return 0.0
    return total_requests / uptime_minutes


def top_endpoints(requests_by_endpoint: dict[str, int], limit: int = DEFAULT_TOP_ENDPOINTS) -> list[tuple[str, int]]:
    """
    Busiest endpoints first, at most `limit` of them.
    sorted() is stable, so ties keep the order endpoints were first seen in.
    """
    ranked = sorted(requests_by_endpoint.items(), key=lambda item: item[1], reverse=True)
    return [(_display_name(key), count) for key, count in ranked[:limit]]


def compute_stats(snapshot: StatsSnapshot, top_n: int = DEFAULT_TOP_ENDPOINTS) -> DerivedStats:
    return DerivedStats(
        total_requests=snapshot.total_requests,
        requests_per_minute=requests_per_minute(snapshot.total_requests, snapshot.uptime_seconds),
        avg_response_time_ms=average_ms(snapshot.response_times_ms),
        uptime_seconds=snapshot.uptime_seconds,
        top_endpoints=top_endpoints(snapshot.requests_by_endpoint, top_n),
    )


def get_stats(
    aggregator: RollingStatsAggregator,
    top_n: int = DEFAULT_TOP_ENDPOINTS,
    now: datetime | None = None,
) -> StatsResponse:
    """Snapshot the aggregator and build the /api/stats response."""
    derived = compute_stats(aggregator.snapshot(), top_n)
    now = now or datetime.now(timezone.utc)
    return StatsResponse(
        total_requests=derived.total_requests,
        requests_per_min=derived.requests_per_minute,
        avg_response_time=derived.avg_response_time_ms,
        uptime=derived.uptime_seconds,
        endpoint_stats=[EndpointStat(name=name, count=count) for name, count in derived.top_endpoints],
        timestamp=now.isoformat(),
    )
