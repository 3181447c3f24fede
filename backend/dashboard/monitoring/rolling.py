"""In-memory rolling request statistics for /api/stats (lifetime = process, no persistence)."""
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from dashboard.monitoring.metrics import MetricObservation, process_start_time

DEFAULT_WINDOW_SIZE = 100

# Unix timestamp of process start; first import time where /proc is unavailable
_process_start = process_start_time() or time.time()


@dataclass(frozen=True)
class StatsSnapshot:
    total_requests: int
    requests_by_endpoint: dict[str, int]
    response_times_ms: tuple[float, ...]
    uptime_seconds: float


class RollingStatsAggregator:
    """
    Request totals, per-endpoint counts and the most recent response times.

    One lock guards all three fields so a snapshot never sees a request
    counted in the total but missing from its endpoint or the sample window.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        clock: Callable[[], float] = time.time,
        start_time: float | None = None,
    ):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self._clock = clock
        self.start_time = _process_start if start_time is None else start_time
        self._total_requests = 0
        self._requests_by_endpoint: dict[str, int] = {}
        self._response_times_ms: deque[float] = deque(maxlen=window_size)
        self._lock = Lock()

    @property
    def window_size(self) -> int:
        return self._response_times_ms.maxlen

    def record_request(self, observation: MetricObservation) -> None:
        key = observation.endpoint_key
        duration_ms = observation.duration_seconds * 1000
        with self._lock:
            self._total_requests += 1
            self._requests_by_endpoint[key] = self._requests_by_endpoint.get(key, 0) + 1
            self._response_times_ms.append(duration_ms)

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            total = self._total_requests
            by_endpoint = dict(self._requests_by_endpoint)
            samples = tuple(self._response_times_ms)
        return StatsSnapshot(
            total_requests=total,
            requests_by_endpoint=by_endpoint,
            response_times_ms=samples,
            uptime_seconds=max(0.0, self._clock() - self.start_time),
        )
