"""Prometheus request metrics for /metrics (counter + latency histogram per method/route/status)."""
import logging
from dataclasses import dataclass

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Same boundaries as the Prometheus client defaults, in seconds
DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
LABEL_NAMES = ("method", "route", "status")


def _process_samples(collector: ProcessCollector) -> dict[str, float]:
    """Flatten a ProcessCollector's families into name -> value. Empty where /proc is unavailable."""
    return {sample.name: sample.value for family in collector.collect() for sample in family.samples}


def process_start_time() -> float | None:
    """Process start as a Unix timestamp, as exported in process_start_time_seconds."""
    return _process_samples(ProcessCollector(registry=None)).get("process_start_time_seconds")


@dataclass(frozen=True)
class MetricObservation:
    """One completed request, as seen by the instrumentation middleware."""

    method: str
    route: str
    status: int
    duration_seconds: float

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("method must be non-empty")
        if not self.route:
            raise ValueError("route must be non-empty")
        if not (100 <= self.status <= 599):
            raise ValueError(f"status must be between 100 and 599, got {self.status}")
        if self.duration_seconds < 0:
            raise ValueError(f"duration_seconds must be non-negative, got {self.duration_seconds}")

    @property
    def endpoint_key(self) -> str:
        return f"{self.method} {self.route}"


class MetricsRegistry:
    """
    Holds the HTTP counter and histogram on a private CollectorRegistry.
    Each instance also registers the process, platform and GC collectors so
    render() matches what the default registry would expose.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, buckets: tuple[float, ...] = DURATION_BUCKETS):
        self._registry = CollectorRegistry(auto_describe=True)
        self._process = ProcessCollector(registry=self._registry)
        PlatformCollector(registry=self._registry)
        GCCollector(registry=self._registry)
        self._requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            LABEL_NAMES,
            registry=self._registry,
        )
        self._duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            LABEL_NAMES,
            buckets=buckets,
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, observation: MetricObservation) -> None:
        labels = (observation.method, observation.route, str(observation.status))
        self._requests.labels(*labels).inc()
        self._duration.labels(*labels).observe(observation.duration_seconds)

    def memory_usage(self) -> dict[str, float | None]:
        """Resident and virtual memory in bytes; None on platforms without /proc."""
        samples = _process_samples(self._process)
        return {
            "rss_bytes": samples.get("process_resident_memory_bytes"),
            "vms_bytes": samples.get("process_virtual_memory_bytes"),
        }

    def render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")
