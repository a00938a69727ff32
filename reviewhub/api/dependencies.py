"""FastAPI dependency injection providers.

Authentication: every protected route resolves the caller from a bearer
JWT. Tokens are verified with the shared HS256 secret when ``jwt_secret`` is
configured, otherwise against the Auth0 tenant's JWKS. The ``sub`` claim
maps to ``User.auth0_id``.
"""

import time
from typing import Any, Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.api.errors import http_error
from reviewhub.config.settings import Settings, get_settings
from reviewhub.core.exceptions import ConfigurationError
from reviewhub.db.models import Business, Review, User
from reviewhub.db.session import get_db
from reviewhub.services.ai_service import AIService, get_ai_service
from reviewhub.services.analytics import AnalyticsService
from reviewhub.services.campaigns import CampaignService
from reviewhub.services.competitors import GooglePlacesCompetitorService
from reviewhub.services.email import EmailService, get_email_service
from reviewhub.services.location_access import LocationService
from reviewhub.services.notifications import NotificationService
from reviewhub.services.review_sync import ReviewSyncService
from reviewhub.services.sms import TwilioSmsService, get_sms_service
from reviewhub.services.team import TeamService

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# Token Verification
# =============================================================================


# Minimum seconds between refetches triggered by an unknown key id
JWKS_REFETCH_INTERVAL = 60.0

_jwks_by_domain: dict[str, tuple[dict[str, Any], float]] = {}


def _fetch_jwks(domain: str) -> dict[str, Any]:
    response = httpx.get(f"https://{domain}/.well-known/jwks.json", timeout=10.0)
    response.raise_for_status()
    return response.json()


def get_signing_keys(domain: str, kid: Optional[str]) -> dict[str, Any]:
    """Cached Auth0 JWKS, refetched when a token names a key it does not contain."""
    cached = _jwks_by_domain.get(domain)
    if cached is not None:
        jwks, fetched_at = cached
        known = {key.get("kid") for key in jwks.get("keys", [])}
        if kid in known or time.monotonic() - fetched_at < JWKS_REFETCH_INTERVAL:
            return jwks

    jwks = _fetch_jwks(domain)
    _jwks_by_domain[domain] = (jwks, time.monotonic())
    logger.info("jwks_fetched", domain=domain, keys=len(jwks.get("keys", [])))
    return jwks


def reset_jwks_cache() -> None:
    _jwks_by_domain.clear()


def decode_token(token: str, settings: Optional[Settings] = None) -> dict[str, Any]:
    """Verify a bearer token and return its claims.

    Raises:
        JWTError: If the signature, expiry or audience is invalid.
        ConfigurationError: If neither jwt_secret nor auth0_domain is set.
    """
    settings = settings or get_settings()
    audience = settings.auth0_audience
    options = {"verify_aud": audience is not None}

    if settings.jwt_secret is not None:
        return jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
            audience=audience,
            options=options,
        )

    if settings.auth0_domain:
        return jwt.decode(
            token,
            get_signing_keys(settings.auth0_domain, jwt.get_unverified_header(token).get("kid")),
            algorithms=["RS256"],
            audience=audience,
            issuer=f"https://{settings.auth0_domain}/",
            options=options,
        )

    raise ConfigurationError("JWT verification is not configured", "auth0_domain")


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = decode_token(credentials.credentials)
    except ConfigurationError as e:
        raise http_error(e) from e
    except (JWTError, httpx.HTTPError) as e:
        logger.warning("token_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return claims


# =============================================================================
# Current User & Ownership
# =============================================================================


def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    user = db.scalar(select(User).where(User.auth0_id == claims["sub"]))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        logger.warning("inactive_user_access", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive. Please contact support.",
        )
    return user


def load_owned_business(db: Session, business_id: int, user: User) -> Business:
    """Business owned by ``user``; 404 for missing or foreign businesses."""
    business = db.scalar(
        select(Business).where(Business.id == business_id).where(Business.user_id == user.id)
    )
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


def get_owned_business(
    business_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Business:
    return load_owned_business(db, business_id, user)


def get_owned_review(
    review_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Review:
    review = db.scalar(
        select(Review)
        .join(Business, Business.id == Review.business_id)
        .where(Review.id == review_id)
        .where(Business.user_id == user.id)
    )
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


# =============================================================================
# Services
# =============================================================================


def get_ai() -> AIService:
    try:
        return get_ai_service()
    except ConfigurationError as e:
        raise http_error(e) from e


def get_location_service(db: Session = Depends(get_db)) -> LocationService:
    return LocationService(db)


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


def get_notification_service(
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> NotificationService:
    return NotificationService(db, email_service=email_service)


def get_team_service(
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> TeamService:
    return TeamService(db, email_service=email_service)


def get_campaign_service(
    db: Session = Depends(get_db),
    sms_service: TwilioSmsService = Depends(get_sms_service),
) -> CampaignService:
    return CampaignService(db, sms_service=sms_service)


def get_competitor_service(db: Session = Depends(get_db)) -> GooglePlacesCompetitorService:
    return GooglePlacesCompetitorService(db)


def get_review_sync_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReviewSyncService:
    return ReviewSyncService(db, notification_service=notification_service)
