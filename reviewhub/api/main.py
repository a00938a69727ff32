"""ReviewHub HTTP application.

Wires the versioned routers under ``/api/v1``, the unversioned health checks,
CORS, the JSON error envelopes and the background scheduler lifecycle.

    uvicorn reviewhub.api.main:app --reload
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reviewhub import __version__
from reviewhub.api.models import ErrorResponse, ValidationErrorDetail, ValidationErrorResponse
from reviewhub.api.routes import (
    ai_router,
    analytics_router,
    auth_router,
    businesses_router,
    campaigns_router,
    competitors_router,
    customers_router,
    health_router,
    integrations_router,
    locations_router,
    notifications_router,
    reviews_router,
    sms_router,
    subscription_router,
    team_router,
    webhooks_router,
)
from reviewhub.api.routes.health import set_server_start_time
from reviewhub.config.settings import get_settings
from reviewhub.core.logging import configure_logging
from reviewhub.db.session import init_db
from reviewhub.scheduler import get_scheduler, reset_scheduler
from reviewhub.services.ai_service import reset_ai_service
from reviewhub.services.email import reset_email_service
from reviewhub.services.sms import reset_sms_service

logger = structlog.get_logger(__name__)

API_TITLE = "ReviewHub API"
API_DESCRIPTION = """
Collects Google, Yelp and Facebook reviews for every location of an
organization into one inbox. Drafts AI replies, watches competitors, sends
SMS review requests and reports on ratings over time.

1. `POST /api/v1/auth/register` with an identity-provider token
2. `POST /api/v1/businesses`
3. `POST /api/v1/integrations/connect/{platform}`
4. `GET /api/v1/reviews`

All `/api/v1` routes take `Authorization: Bearer <jwt>`, apart from the
inbound webhooks and the OAuth callback.
"""

V1_ROUTERS = (
    auth_router,
    businesses_router,
    reviews_router,
    locations_router,
    integrations_router,
    competitors_router,
    customers_router,
    campaigns_router,
    sms_router,
    notifications_router,
    team_router,
    analytics_router,
    ai_router,
    subscription_router,
    webhooks_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and run the scheduler for the lifetime of the process."""
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=not settings.is_development)
    set_server_start_time()
    init_db()
    logger.info("reviewhub_starting", environment=settings.app_env)

    scheduler = get_scheduler()
    if settings.scheduler_enabled:
        try:
            await scheduler.start()
        except Exception as e:
            # Manual sync and send endpoints keep working without it
            logger.error("scheduler_start_failed", error=str(e))

    yield

    if scheduler.is_running:
        try:
            await scheduler.stop()
        except Exception as e:
            logger.error("scheduler_stop_failed", error=str(e))

    for reset in (reset_scheduler, reset_ai_service, reset_sms_service, reset_email_service):
        reset()
    logger.info("reviewhub_stopped")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=__version__,
    lifespan=lifespan,
)

_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allowed_origins,
    allow_credentials=_settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Stripe-Signature"],
)


@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ValidationErrorResponse(
        errors=[
            ValidationErrorDetail(
                field=".".join(str(part) for part in err["loc"]),
                message=err["msg"],
                value=err.get("input"),
            )
            for err in exc.errors()
        ],
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def on_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Log anything a route let escape and answer with a 500 envelope."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    body = ErrorResponse(
        error="internal_server_error",
        message="An unexpected error occurred",
        detail=str(exc) if get_settings().debug else None,
        path=request.url.path,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump(mode="json"))


@app.get("/", include_in_schema=False)
async def root() -> dict:
    return {
        "name": API_TITLE,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


app.include_router(health_router)

api_v1_router = APIRouter(prefix="/api/v1")
for router in V1_ROUTERS:
    api_v1_router.include_router(router)
app.include_router(api_v1_router)
