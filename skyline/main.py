import time
import uuid

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from skyline.core.config import get_settings
from skyline.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from skyline.core.logging import bind_request_id, clear_request_context, configure_logging, get_logger
from skyline.db.init import close_db, init_db
from skyline.realtime.notifier import EventNotifier
from skyline.routers import admin, auth, bookings, campaigns, deposits, messages, notifications, profile, wallet, ws

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

app = FastAPI(
    title="Skyline API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set here so dependencies resolve even when lifespan events do not run (tests)
app.state.notifier = EventNotifier(
    token_ttl_seconds=settings.ws_token_ttl_seconds,
    sweep_interval_seconds=settings.ws_token_sweep_seconds,
    send_timeout_seconds=settings.ws_send_timeout_seconds,
    outbox_size=settings.ws_outbox_size,
)
app.state.http_client = None


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_id(request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        clear_request_context()


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(auth.router, prefix="/v1/auth", tags=["auth"])
app.include_router(profile.router, prefix="/v1/profile", tags=["profile"])
app.include_router(wallet.router, prefix="/v1", tags=["wallet"])
app.include_router(bookings.router, prefix="/v1/bookings", tags=["bookings"])
app.include_router(deposits.router, prefix="/v1/deposits", tags=["deposits"])
app.include_router(campaigns.router, prefix="/v1/campaigns", tags=["campaigns"])
app.include_router(messages.router, prefix="/v1/messages", tags=["messages"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
app.include_router(ws.router, tags=["realtime"])


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        import sentry_sdk
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
        log.info("startup", msg="Sentry enabled")
    await init_db()
    log.info("startup", msg="DB connected")
    app.state.http_client = httpx.AsyncClient(timeout=settings.price_timeout_seconds)
    await app.state.notifier.start()
    log.info("startup", msg="Notifier started")


@app.on_event("shutdown")
async def shutdown():
    await app.state.notifier.stop()
    if app.state.http_client is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
    close_db()
    log.info("shutdown", msg="Resources released")


@app.get("/health")
async def health():
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}
