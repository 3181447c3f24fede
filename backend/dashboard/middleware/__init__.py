from dashboard.middleware.instrumentation import RequestInstrumentationMiddleware, resolve_route

__all__ = ["RequestInstrumentationMiddleware", "resolve_route"]
