"""Subscription plan catalogue and the caller's current plan.

Plan changes arrive through the Stripe webhook; this router is read-only.
"""

from fastapi import APIRouter, Depends

from reviewhub.api.dependencies import get_current_user
from reviewhub.api.models import CurrentSubscriptionResponse, PlanResponse
from reviewhub.config.settings import Settings, get_settings
from reviewhub.db.base import utcnow
from reviewhub.db.enums import SubscriptionPlan
from reviewhub.db.models import User
from reviewhub.services.sms import PLAN_SMS_LIMITS

router = APIRouter(prefix="/subscription", tags=["Subscription"])

PLAN_PRICES: dict[SubscriptionPlan, int] = {
    SubscriptionPlan.FREE: 0,
    SubscriptionPlan.PRO: 49,
    SubscriptionPlan.ENTERPRISE: 149,
}

PLAN_FEATURES: dict[SubscriptionPlan, list[str]] = {
    SubscriptionPlan.FREE: [
        "1 Business Location",
        "Up to 50 reviews/month",
        "Basic analytics",
        "Email support",
    ],
    SubscriptionPlan.PRO: [
        "5 Business Locations",
        "Unlimited reviews",
        "Advanced analytics",
        "AI-powered replies",
        "SMS campaigns (500/month)",
        "Priority support",
    ],
    SubscriptionPlan.ENTERPRISE: [
        "Unlimited locations",
        "Unlimited reviews",
        "White-label options",
        "Advanced AI features",
        "Unlimited SMS campaigns",
        "Dedicated account manager",
        "Custom integrations",
    ],
}


def stripe_price_ids(settings: Settings) -> dict[SubscriptionPlan, str | None]:
    return {
        SubscriptionPlan.FREE: None,
        SubscriptionPlan.PRO: settings.stripe_pro_price_id,
        SubscriptionPlan.ENTERPRISE: settings.stripe_enterprise_price_id,
    }


@router.get("/plans", response_model=list[PlanResponse], summary="Plan catalogue")
async def list_plans(settings: Settings = Depends(get_settings)) -> list[PlanResponse]:
    price_ids = stripe_price_ids(settings)
    return [
        PlanResponse(
            id=plan.value.lower(),
            name=plan.value,
            price=PLAN_PRICES[plan],
            interval="month",
            features=PLAN_FEATURES[plan],
            sms_limit=PLAN_SMS_LIMITS[plan.value],
            stripe_price_id=price_ids[plan],
        )
        for plan in SubscriptionPlan
    ]


@router.get("/current", response_model=CurrentSubscriptionResponse, summary="Current plan")
async def current_subscription(user: User = Depends(get_current_user)) -> CurrentSubscriptionResponse:
    expires_at = user.subscription_expires_at
    return CurrentSubscriptionResponse(
        plan=user.subscription_plan,
        expires_at=expires_at,
        stripe_customer_id=user.stripe_customer_id,
        is_active=expires_at is None or expires_at > utcnow(),
    )
