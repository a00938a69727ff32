"""
Review import for connected platforms.

Used by the API sync endpoint, the platform webhooks and the Yelp polling
job. Every newly imported review produces a notification for the business
owner.
"""

from typing import Optional

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import NotFoundError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.db.models import PlatformConnection, Review
from reviewhub.services.notifications import NotificationService
from reviewhub.services.platforms import get_platform_adapter

logger = structlog.get_logger(__name__)


class ReviewSyncService:
    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.notifications = notification_service or NotificationService(db)
        self._http_client = http_client

    async def sync_connection(self, connection_id: int) -> list[Review]:
        """Import new reviews for one connection and notify the owner about each.

        Raises:
            NotFoundError: If the connection does not exist.
            UnsupportedPlatformError: If the platform has no adapter.
            PlatformError: If the platform API call fails.
        """
        connection = self.db.get(PlatformConnection, connection_id)
        if connection is None:
            raise NotFoundError("Platform connection")

        adapter = get_platform_adapter(connection.platform, self.db, http_client=self._http_client)
        try:
            new_reviews = await adapter.fetch_reviews(connection.id)
        finally:
            if self._http_client is None:
                await adapter.aclose()

        for review in new_reviews:
            await self.notifications.send_review_notification(
                connection.business_id, connection.platform.name, review
            )
        return new_reviews

    def find_connection(
        self, platform: ReviewPlatform, platform_business_id: str
    ) -> Optional[PlatformConnection]:
        """Active connection whose external business id matches a webhook payload."""
        return self.db.scalar(
            select(PlatformConnection)
            .where(PlatformConnection.platform == platform)
            .where(PlatformConnection.platform_business_id == platform_business_id)
            .where(PlatformConnection.is_active.is_(True))
        )


class YelpPollingService:
    """Yelp has no review webhooks, so auto-sync connections are polled."""

    def __init__(self, db: Session, sync_service: Optional[ReviewSyncService] = None):
        self.db = db
        self.sync = sync_service or ReviewSyncService(db)

    def connections(self) -> list[PlatformConnection]:
        return list(
            self.db.scalars(
                select(PlatformConnection)
                .where(PlatformConnection.platform == ReviewPlatform.Yelp)
                .where(PlatformConnection.is_active.is_(True))
                .where(PlatformConnection.auto_sync.is_(True))
                .order_by(PlatformConnection.id)
            ).all()
        )

    async def poll_once(self) -> int:
        """Poll every eligible connection. Returns the number of new reviews."""
        imported = 0
        for connection in self.connections():
            try:
                new_reviews = await self.sync.sync_connection(connection.id)
                imported += len(new_reviews)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    "yelp_poll_failed",
                    connection_id=connection.id,
                    business_id=connection.business_id,
                    error=str(e),
                )

        logger.info("yelp_poll_complete", imported=imported)
        return imported
