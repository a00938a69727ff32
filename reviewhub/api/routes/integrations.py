"""Review platform integration endpoints.

Connecting a platform is a browser round trip: ``connect`` returns the
provider consent URL, the provider redirects back to ``callback`` which
stores the tokens and sends the browser on to the web client.
"""

from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import (
    get_current_user,
    get_owned_business,
    get_review_sync_service,
    load_owned_business,
)
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    ConnectRequest,
    ConnectResponse,
    ErrorResponse,
    MessageResponse,
    PlatformConnectionResponse,
    PlatformInfoResponse,
    SyncResponse,
)
from reviewhub.config.settings import get_settings
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.db.models import Business, PlatformConnection, User
from reviewhub.db.session import get_db
from reviewhub.services.platforms import get_platform_adapter, list_platforms
from reviewhub.services.review_sync import ReviewSyncService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _parse_platform(value: str) -> ReviewPlatform:
    try:
        return ReviewPlatform.parse(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown platform: {value}")


def _owned_connection(db: Session, connection_id: int, user: User) -> PlatformConnection:
    connection = db.scalar(
        select(PlatformConnection)
        .join(Business, Business.id == PlatformConnection.business_id)
        .where(PlatformConnection.id == connection_id)
        .where(Business.user_id == user.id)
    )
    if connection is None:
        raise HTTPException(status_code=404, detail="Connection not found")
    return connection


def _frontend_redirect(**params: str) -> RedirectResponse:
    base = get_settings().frontend_url.rstrip("/")
    return RedirectResponse(url=f"{base}/integrations?{urlencode(params)}", status_code=302)


@router.get("/platforms", response_model=list[PlatformInfoResponse], summary="Platform catalogue")
async def get_platforms() -> list[PlatformInfoResponse]:
    """Every known platform; those without an OAuth integration are marked coming soon."""
    return [PlatformInfoResponse.model_validate(info) for info in list_platforms()]


@router.get(
    "/business/{business_id}",
    response_model=list[PlatformConnectionResponse],
    summary="Connections of a business",
)
async def list_connections(
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> list[PlatformConnectionResponse]:
    connections = db.scalars(
        select(PlatformConnection)
        .where(PlatformConnection.business_id == business.id)
        .where(PlatformConnection.is_active.is_(True))
        .order_by(PlatformConnection.connected_at.desc())
    ).all()
    return [PlatformConnectionResponse.model_validate(c) for c in connections]


@router.post(
    "/connect/{platform}",
    response_model=ConnectResponse,
    summary="Start connecting a platform",
    responses={400: {"model": ErrorResponse, "description": "Platform not supported"}},
)
async def connect_platform(
    platform: str,
    request: ConnectRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConnectResponse:
    review_platform = _parse_platform(platform)
    business = load_owned_business(db, request.business_id, user)
    try:
        adapter = get_platform_adapter(review_platform, db)
        auth_url = adapter.get_authorization_url(user.id, business.id)
    except ReviewHubError as e:
        raise http_error(e) from e

    logger.info("platform_connect_started", platform=review_platform.name, business_id=business.id)
    return ConnectResponse(auth_url=auth_url, platform=review_platform.name)


@router.get("/{platform}/callback", summary="OAuth callback", include_in_schema=False)
async def oauth_callback(
    platform: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Provider redirect target; always answers with a redirect to the web client."""
    if error:
        logger.warning("oauth_callback_denied", platform=platform, error=error)
        return _frontend_redirect(error="true", message=error)
    if not code or not state:
        return _frontend_redirect(error="true", message="Missing code or state")

    adapter = None
    try:
        review_platform = ReviewPlatform.parse(platform)
        adapter = get_platform_adapter(review_platform, db)
        message = await adapter.exchange_code_for_token(code, state)
    except (ReviewHubError, ValueError) as e:
        db.rollback()
        logger.error("oauth_callback_failed", platform=platform, error=str(e))
        return _frontend_redirect(error="true", message=getattr(e, "message", str(e)))
    finally:
        if adapter is not None:
            await adapter.aclose()

    return _frontend_redirect(success="true", platform=review_platform.name, message=message)


@router.delete("/{connection_id}", response_model=MessageResponse, summary="Disconnect a platform")
async def disconnect(
    connection_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    connection = _owned_connection(db, connection_id, user)
    connection.is_active = False
    db.commit()
    logger.info("platform_disconnected", connection_id=connection.id)
    return MessageResponse(message="Platform disconnected successfully")


@router.post(
    "/{connection_id}/sync",
    response_model=SyncResponse,
    summary="Import new reviews now",
    responses={502: {"model": ErrorResponse, "description": "Platform API failure"}},
)
async def sync_connection(
    connection_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    sync_service: ReviewSyncService = Depends(get_review_sync_service),
) -> SyncResponse:
    connection = _owned_connection(db, connection_id, user)
    if not connection.is_active:
        raise HTTPException(status_code=400, detail="Connection is not active")

    try:
        new_reviews = await sync_service.sync_connection(connection.id)
    except ReviewHubError as e:
        db.rollback()
        logger.error("manual_sync_failed", connection_id=connection.id, error=e.message)
        raise http_error(e) from e

    return SyncResponse(
        message=f"Synced {len(new_reviews)} new reviews",
        new_reviews=len(new_reviews),
    )
