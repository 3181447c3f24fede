"""Tests for derived statistics and the /api/stats response builder."""
from datetime import datetime, timezone

import pytest

from dashboard.monitoring.metrics import MetricObservation
from dashboard.monitoring.rolling import RollingStatsAggregator, StatsSnapshot
from dashboard.monitoring.stats import (
    average_ms,
    compute_stats,
    get_stats,
    requests_per_minute,
    top_endpoints,
)


def _snapshot(total=0, by_endpoint=None, samples=(), uptime=0.0):
    return StatsSnapshot(
        total_requests=total,
        requests_by_endpoint=by_endpoint or {},
        response_times_ms=tuple(samples),
        uptime_seconds=uptime,
    )


# --- Helpers ---


def test_average_empty_is_zero():
    assert average_ms(()) == 0.0


def test_average():
    assert average_ms((10.0, 20.0, 60.0)) == 30.0


def test_requests_per_minute_zero_uptime_is_zero():
    assert requests_per_minute(50, 0.0) == 0.0


def test_requests_per_minute():
    # 30 requests over 2 minutes
    assert requests_per_minute(30, 120.0) == 15.0


def test_top_endpoints_sorted_descending_and_truncated():
    counts = {f"GET /r{i}": i for i in range(1, 10)}
    top = top_endpoints(counts)
    assert len(top) == 6
    assert [c for _, c in top] == [9, 8, 7, 6, 5, 4]
    assert top[0] == ("/r9", 9)


def test_top_endpoints_ties_keep_first_seen_order():
    counts = {"GET /b": 2, "POST /a": 5, "GET /c": 2, "DELETE /d": 2}
    assert top_endpoints(counts) == [("/a", 5), ("/b", 2), ("/c", 2), ("/d", 2)]


def test_top_endpoints_strips_any_method():
    counts = {"PUT /api/items/{item_id}": 1, "PATCH /x": 1}
    assert [name for name, _ in top_endpoints(counts)] == ["/api/items/{item_id}", "/x"]


def test_top_endpoints_custom_limit():
    counts = {"GET /a": 3, "GET /b": 2, "GET /c": 1}
    assert top_endpoints(counts, limit=2) == [("/a", 3), ("/b", 2)]


# --- compute_stats / get_stats ---


def test_compute_stats_on_empty_snapshot():
    derived = compute_stats(_snapshot())
    assert derived.total_requests == 0
    assert derived.avg_response_time_ms == 0.0
    assert derived.requests_per_minute == 0.0
    assert derived.top_endpoints == []


def test_compute_stats():
    snap = _snapshot(
        total=5,
        by_endpoint={"GET /api/data": 3, "POST /api/echo": 2},
        samples=(10.0, 20.0, 30.0, 40.0, 50.0),
        uptime=60.0,
    )
    derived = compute_stats(snap)
    assert derived.requests_per_minute == 5.0
    assert derived.avg_response_time_ms == 30.0
    assert derived.top_endpoints == [("/api/data", 3), ("/api/echo", 2)]


def test_get_stats_schema_uses_camel_case():
    agg = RollingStatsAggregator(clock=lambda: 60.0, start_time=0.0)
    agg.record_request(MetricObservation("GET", "/api/data", 200, 0.01))
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    body = get_stats(agg, now=now).model_dump(by_alias=True)
    assert body == {
        "totalRequests": 1,
        "requestsPerMin": 1.0,
        "avgResponseTime": pytest.approx(10.0),
        "uptime": 60.0,
        "endpointStats": [{"name": "/api/data", "count": 1}],
        "timestamp": "2026-01-01T00:00:00+00:00",
    }


def test_get_stats_is_idempotent_apart_from_timestamp():
    agg = RollingStatsAggregator(clock=lambda: 300.0, start_time=0.0)
    for route in ["/a", "/b", "/a"]:
        agg.record_request(MetricObservation("GET", route, 200, 0.005))
    first = get_stats(agg).model_dump(by_alias=True, exclude={"timestamp"})
    second = get_stats(agg).model_dump(by_alias=True, exclude={"timestamp"})
    assert first == second


def test_get_stats_does_not_mutate_aggregator():
    agg = RollingStatsAggregator()
    agg.record_request(MetricObservation("GET", "/a", 200, 0.005))
    get_stats(agg)
    get_stats(agg)
    assert agg.snapshot().total_requests == 1
