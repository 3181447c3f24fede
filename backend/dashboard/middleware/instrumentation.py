"""Request instrumentation middleware: time every request, feed Prometheus + rolling stats, log it."""
import logging
import time

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from dashboard.monitoring.metrics import MetricObservation, MetricsRegistry
from dashboard.monitoring.rolling import RollingStatsAggregator

logger = logging.getLogger(__name__)

UNMATCHED_ROUTE = "unmatched"


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def resolve_route(request: Request, unmatched_label: str = UNMATCHED_ROUTE) -> str:
    """Route template the router matched (e.g. /api/items/{item_id}), else a fixed label."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or unmatched_label


class RequestInstrumentationMiddleware:
    """
    ASGI middleware recording one observation per request into the metrics
    registry and then the rolling stats aggregator.

    The observation is taken once the last body chunk has been sent. A handler
    exception raised before the response started is recorded as a 500 and
    re-raised for the app's error handler. A request whose response never
    finishes (client went away, task cancelled) is not recorded.
    Sink failures are logged and dropped; they never reach the client.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsRegistry,
        stats: RollingStatsAggregator,
        unmatched_label: str = UNMATCHED_ROUTE,
    ):
        self.app = app
        self.metrics = metrics
        self.stats = stats
        self.unmatched_label = unmatched_label

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500
        response_started = False
        recorded = False

        async def send_with_timing(message: Message) -> None:
            nonlocal status_code, response_started, recorded
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_started = True
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False) and not recorded:
                recorded = True
                self._observe(scope, status_code, time.perf_counter() - start)

        try:
            await self.app(scope, receive, send_with_timing)
        except Exception:
            # After the response started, a failure means the stream broke; leave it unrecorded
            if not response_started and not recorded:
                recorded = True
                self._observe(scope, 500, time.perf_counter() - start)
            raise

    def _observe(self, scope: Scope, status_code: int, duration: float) -> None:
        request = Request(scope)
        route = resolve_route(request, self.unmatched_label)
        try:
            observation = MetricObservation(
                method=request.method,
                route=route,
                status=status_code,
                duration_seconds=duration,
            )
        except ValueError:
            logger.exception("telemetry instrumentation_failed method=%s route=%s status=%s", request.method, route, status_code)
            return
        for sink in (self.metrics, self.stats):
            try:
                sink.record_request(observation)
            except Exception:
                logger.exception(
                    "telemetry instrumentation_failed sink=%s method=%s route=%s status=%s",
                    type(sink).__name__,
                    request.method,
                    route,
                    status_code,
                )
        logger.info(
            "request method=%s route=%s path=%s status=%s duration_ms=%.1f client=%s",
            request.method,
            route,
            request.url.path,
            status_code,
            duration * 1000,
            _client_ip(request),
        )
