"""API route modules."""

from reviewhub.api.routes.ai import router as ai_router
from reviewhub.api.routes.analytics import router as analytics_router
from reviewhub.api.routes.auth import router as auth_router
from reviewhub.api.routes.businesses import router as businesses_router
from reviewhub.api.routes.campaigns import router as campaigns_router
from reviewhub.api.routes.competitors import router as competitors_router
from reviewhub.api.routes.customers import router as customers_router
from reviewhub.api.routes.health import router as health_router
from reviewhub.api.routes.integrations import router as integrations_router
from reviewhub.api.routes.locations import router as locations_router
from reviewhub.api.routes.notifications import router as notifications_router
from reviewhub.api.routes.reviews import router as reviews_router
from reviewhub.api.routes.sms import router as sms_router
from reviewhub.api.routes.subscription import router as subscription_router
from reviewhub.api.routes.team import router as team_router
from reviewhub.api.routes.webhooks import router as webhooks_router

__all__ = [
    "ai_router",
    "analytics_router",
    "auth_router",
    "businesses_router",
    "campaigns_router",
    "competitors_router",
    "customers_router",
    "health_router",
    "integrations_router",
    "locations_router",
    "notifications_router",
    "reviews_router",
    "sms_router",
    "subscription_router",
    "team_router",
    "webhooks_router",
]
