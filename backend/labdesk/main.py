import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .auth import get_current_user
from .config import Settings
from .database import Store
from .rate_limit import limiter
from .routes import (
    auth,
    users,
    equipment,
    bookings,
    usage,
    inventory,
    activity,
    notifications,
)
from .services.alerts import AlertService
from .services.booking import BookingService
from .services.inventory import InventoryCatalog
from .services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

PUBLIC_PATHS = {
    "/api/auth/login",
    "/api/auth/register",
    "/metrics",
}


def _depends_on(dependant, target) -> bool:
    for dep in dependant.dependencies:
        if dep.call is target or _depends_on(dep, target):
            return True
    return False


def _api_routes(routes, prefix: str = ""):
    """Yield ``(full_path, route)`` for every APIRoute, descending into included routers."""
    for route in routes:
        if isinstance(route, APIRoute):
            yield prefix + route.path, route
            continue
        # newer FastAPI keeps include_router() targets as nested router entries
        included = getattr(route, "original_router", None)
        if included is not None:
            yield from _api_routes(included.routes, prefix + route.include_context.prefix)


def audit_routes(app: FastAPI) -> None:
    """Refuse to start when an /api route can be reached without a signed-in user."""
    for path, route in _api_routes(app.routes):
        if path.startswith("/api") and path not in PUBLIC_PATHS:
            if not _depends_on(route.dependant, get_current_user):
                raise RuntimeError(f"Route {path} missing authentication")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, integrations=[FastApiIntegration()])

    store = Store(settings.database_url, retry_attempts=settings.lock_retry_attempts)
    store.create_all()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        store.dispose()

    app = FastAPI(title="LabDesk API", lifespan=lifespan)

    ledger = StockLedger(store)
    app.state.settings = settings
    app.state.store = store
    app.state.bookings = BookingService(store)
    app.state.ledger = ledger
    app.state.catalog = InventoryCatalog(store, ledger, expiring_within_days=settings.expiry_critical_days)
    app.state.alerts = AlertService(
        store,
        critical_days=settings.expiry_critical_days,
        warning_days=settings.expiry_warning_days,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter.enabled = not settings.testing
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
    if not settings.testing:
        app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def record_metrics(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        route = request.scope.get("route")
        endpoint = route.path if route is not None else request.url.path
        REQUEST_COUNT.labels(request.method, endpoint).inc()
        REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(equipment.router)
    app.include_router(bookings.router)
    app.include_router(usage.router)
    app.include_router(inventory.router)
    app.include_router(activity.router)
    app.include_router(notifications.router)

    audit_routes(app)
    logger.info("LabDesk API ready on %s", store.engine.url.render_as_string(hide_password=True))
    return app
