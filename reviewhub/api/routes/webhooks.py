"""Inbound webhooks from Stripe, Google Business Profile and Facebook.

These routes are unauthenticated; Stripe payloads are verified by
signature and Facebook subscriptions by the shared verify token.
"""

import json
from datetime import timedelta
from typing import Any, Optional

import stripe
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_review_sync_service
from reviewhub.config.settings import Settings, get_settings
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.base import utcnow
from reviewhub.db.enums import ReviewPlatform, SubscriptionPlan
from reviewhub.db.models import User
from reviewhub.db.session import get_db
from reviewhub.services.review_sync import ReviewSyncService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SUBSCRIPTION_PERIOD = timedelta(days=30)


# =============================================================================
# Stripe
# =============================================================================


def plan_for_price(price_id: Optional[str], settings: Settings) -> SubscriptionPlan:
    if price_id and price_id == settings.stripe_pro_price_id:
        return SubscriptionPlan.PRO
    if price_id and price_id == settings.stripe_enterprise_price_id:
        return SubscriptionPlan.ENTERPRISE
    return SubscriptionPlan.FREE


def _subscription_price_id(subscription: dict[str, Any]) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


def _user_by_customer(db: Session, customer_id: Optional[str]) -> Optional[User]:
    if not customer_id:
        return None
    return db.scalar(select(User).where(User.stripe_customer_id == customer_id))


def apply_stripe_event(db: Session, event: dict[str, Any], settings: Settings) -> None:
    """Mirror a verified Stripe event onto the affected user's plan."""
    event_type = event["type"]
    data = event["data"]["object"]

    if event_type == "checkout.session.completed":
        user_id = data.get("client_reference_id")
        user = db.get(User, int(user_id)) if user_id and str(user_id).isdigit() else None
        if user is None:
            logger.warning("stripe_checkout_user_missing", client_reference_id=user_id)
            return
        user.stripe_customer_id = data.get("customer")
        db.commit()
        logger.info("stripe_customer_linked", user_id=user.id)

    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        user = _user_by_customer(db, data.get("customer"))
        if user is None:
            logger.warning("stripe_subscription_user_missing", customer=data.get("customer"))
            return
        plan = plan_for_price(_subscription_price_id(data), settings)
        user.subscription_plan = plan.value
        user.subscription_expires_at = utcnow() + SUBSCRIPTION_PERIOD
        db.commit()
        logger.info("subscription_updated", user_id=user.id, plan=plan.value)

    elif event_type == "customer.subscription.deleted":
        user = _user_by_customer(db, data.get("customer"))
        if user is None:
            return
        user.subscription_plan = SubscriptionPlan.FREE.value
        user.subscription_expires_at = None
        db.commit()
        logger.info("subscription_cancelled", user_id=user.id)

    elif event_type == "invoice.payment_failed":
        logger.warning("stripe_payment_failed", customer=data.get("customer"))

    else:
        logger.debug("stripe_event_ignored", event_type=event_type)


@router.post("/stripe", summary="Stripe events")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
) -> dict:
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing stripe-signature header")
    if settings.stripe_webhook_secret is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stripe webhooks not configured")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret.get_secret_value(),
        )
    except ValueError:
        logger.error("stripe_webhook_invalid_payload")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.error("stripe_webhook_invalid_signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    event = json.loads(payload)
    logger.info("stripe_webhook_received", event_type=event["type"])
    apply_stripe_event(db, event, settings)
    return {"status": "success"}


# =============================================================================
# Review platforms
# =============================================================================


async def _sync_matching(
    sync_service: ReviewSyncService,
    platform: ReviewPlatform,
    platform_business_id: str,
) -> int:
    """Import reviews for the connection behind a webhook; 0 when none matches."""
    connection = sync_service.find_connection(platform, platform_business_id)
    if connection is None:
        logger.warning(
            "webhook_connection_missing",
            platform=platform.name,
            platform_business_id=platform_business_id,
        )
        return 0
    try:
        new_reviews = await sync_service.sync_connection(connection.id)
    except ReviewHubError as e:
        sync_service.db.rollback()
        logger.error("webhook_sync_failed", connection_id=connection.id, error=e.message)
        return 0
    return len(new_reviews)


@router.post("/google/review", summary="Google review notification")
async def google_review_webhook(
    request: Request,
    sync_service: ReviewSyncService = Depends(get_review_sync_service),
) -> dict:
    """Acknowledged even when no connection matches, so Google does not retry."""
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    location_name = payload.get("locationName") if isinstance(payload, dict) else None
    if not location_name:
        raise HTTPException(status_code=400, detail="locationName is required")

    imported = await _sync_matching(sync_service, ReviewPlatform.Google, location_name)
    return {"status": "success", "newReviews": imported}


@router.get("/facebook", summary="Facebook subscription verification")
async def facebook_verify(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    if mode == "subscribe" and verify_token == settings.facebook_webhook_verify_token:
        logger.info("facebook_webhook_verified")
        return PlainTextResponse(challenge or "")
    logger.warning("facebook_webhook_verification_failed", mode=mode)
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/facebook", summary="Facebook page rating changes")
async def facebook_webhook(
    request: Request,
    sync_service: ReviewSyncService = Depends(get_review_sync_service),
) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    entries = payload.get("entry") if isinstance(payload, dict) else None
    if not entries:
        raise HTTPException(status_code=400, detail="No entries in payload")

    imported = 0
    for entry in entries:
        page_id = str(entry.get("id") or "")
        if not page_id:
            continue
        if any(change.get("field") == "ratings" for change in entry.get("changes") or []):
            imported += await _sync_matching(sync_service, ReviewPlatform.Facebook, page_id)

    return {"status": "success", "newReviews": imported}
