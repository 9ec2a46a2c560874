from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from app.api.errors import register_error_handlers
from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.db import init_db
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.request_id import RequestIdMiddleware
from app.middleware.security_headers import SecurityHeadersMiddleware
from app.notifications.bus import EventBus
from app.notifications.subscribers import register_default_subscribers

configure_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.env == "local":
        init_db()

    bus = EventBus()
    unsubscribers = register_default_subscribers(bus)
    app.state.event_bus = bus
    logger.info("app_started", env=settings.env, subscribers=bus.subscriber_count())
    try:
        yield
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        app.state.event_bus = None
        logger.info("app_stopped")


app = FastAPI(title="Map & Mingle API", lifespan=lifespan)

# Middleware ordering matters.
# Starlette runs the LAST added middleware FIRST (outermost).
# We want:
# - RequestId + SecurityHeaders to apply even to CORS preflight + rate limit responses
# - CORS to handle preflight properly
# - RateLimit to be closest to the app (innermost)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

register_error_handlers(app)


@app.get("/")
def root():
    return {"name": "Map & Mingle API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(v1_router, prefix="/v1")
