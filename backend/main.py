import asyncio
import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from dashboard.middleware import RequestInstrumentationMiddleware
from dashboard.monitoring import MetricsRegistry, RollingStatsAggregator, get_stats
from dashboard.monitoring.models import StatsResponse
from settings import Settings, get_settings

BACKEND_ROOT = Path(__file__).resolve().parent

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to the dashboard"

# Mock payload for /api/data
MOCK_SERVICES = [
    {"id": 1, "name": "Service A", "status": "active", "latency": "45ms"},
    {"id": 2, "name": "Service B", "status": "active", "latency": "32ms"},
    {"id": 3, "name": "Service C", "status": "active", "latency": "58ms"},
    {"id": 4, "name": "Database", "status": "active", "latency": "12ms"},
    {"id": 5, "name": "Redis Cache", "status": "active", "latency": "5ms"},
]
SIMULATED_LOAD_MAX_MS = 100.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _public_dir(settings: Settings) -> Path:
    path = Path(settings.public_dir)
    return path if path.is_absolute() else BACKEND_ROOT / path


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the app with its own MetricsRegistry and RollingStatsAggregator.
    Both live on app.state for the lifetime of the app; the middleware gets
    them at construction time.
    """
    settings = settings or get_settings()
    metrics = MetricsRegistry()
    stats = RollingStatsAggregator(window_size=settings.stats_window_size)
    public_dir = _public_dir(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "telemetry startup environment=%s port=%s public_dir=%s",
            settings.environment,
            settings.port,
            public_dir,
        )
        yield
        logger.info("telemetry shutdown total_requests=%s", stats.snapshot().total_requests)

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.stats = stats

    def _not_found(request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "path": request.url.path, "timestamp": _now_iso()},
        )

    @app.exception_handler(404)
    def not_found_handler(request: Request, exc: HTTPException):
        return _not_found(request)

    @app.exception_handler(405)
    async def method_not_allowed_handler(request: Request, exc: HTTPException):
        """405 from a matched route stays 405; from the static mount (no route matched) it is a 404."""
        if request.scope.get("route") is None:
            return _not_found(request)
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    def unhandled_exception_handler(request: Request, exc: Exception):
        """Return consistent JSON error for unhandled exceptions (500). Message only outside production."""
        logger.exception("telemetry unhandled_exception path=%s", request.url.path)
        content = {"error": "internal_server_error", "timestamp": _now_iso()}
        if settings.echo_errors:
            content["message"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    # Order: last added = outermost. Instrumentation wraps CORS so every response is observed.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RequestInstrumentationMiddleware,
        metrics=metrics,
        stats=stats,
        unmatched_label=settings.unmatched_route_label,
    )

    def _welcome() -> dict:
        return {"message": WELCOME_MESSAGE, "version": settings.version, "timestamp": _now_iso()}

    @app.get("/")
    def index(request: Request):
        """Serve the dashboard page; JSON welcome in test env or when no dashboard is installed."""
        index_html = public_dir / "index.html"
        if settings.environment == "test" or not index_html.is_file():
            return _welcome()
        return FileResponse(index_html)

    @app.get("/welcome")
    def welcome(request: Request):
        return _welcome()

    @app.get("/health")
    def health(request: Request):
        return {
            "status": "healthy",
            "uptime": stats.snapshot().uptime_seconds,
            "timestamp": _now_iso(),
            "environment": settings.environment,
            "memory": metrics.memory_usage(),
        }

    @app.get("/metrics")
    def prometheus_metrics(request: Request):
        """Prometheus text exposition of process metrics plus HTTP counters/histograms."""
        return Response(content=metrics.render(), media_type=metrics.content_type)

    @app.get("/api/stats", response_model=StatsResponse)
    def api_stats(request: Request):
        """Rolling summary for the dashboard: totals, throughput, latency, busiest endpoints."""
        return get_stats(stats, top_n=settings.stats_top_endpoints)

    @app.get("/api/data")
    def api_data(request: Request):
        return {
            "data": MOCK_SERVICES,
            "timestamp": _now_iso(),
            "requestCount": stats.snapshot().total_requests,
        }

    @app.post("/api/echo")
    def api_echo(request: Request, body: Any = Body(default=None)):
        return {"received": body, "timestamp": _now_iso(), "headers": dict(request.headers)}

    @app.get("/api/simulate-load")
    async def simulate_load(request: Request):
        delay_ms = random.uniform(0, SIMULATED_LOAD_MAX_MS)
        await asyncio.sleep(delay_ms / 1000)
        return {"message": "Simulated load", "delay": f"{delay_ms:.2f}ms", "timestamp": _now_iso()}

    @app.get("/error")
    def error_route(request: Request):
        """Always fails; exercises the 500 path and its instrumentation."""
        raise RuntimeError("Test error route")

    if public_dir.is_dir():
        # Mounted last so API routes win; unknown files fall through to the 404 handler
        app.mount("/", StaticFiles(directory=public_dir), name="static")

    return app


settings = get_settings()

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=settings.log_level,
    format="%(levelname)s %(name)s %(message)s",
)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
