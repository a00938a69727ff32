"""
In-app notifications and notification preferences.

New reviews fan out to the business owner as an in-app Notification row and,
when the owner's preferences allow it, an email.
"""

from typing import Any, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import NotFoundError
from reviewhub.db.base import utcnow
from reviewhub.db.enums import NotificationType
from reviewhub.db.models import Business, Notification, NotificationPreference, Review, User
from reviewhub.services.email import EmailService, get_email_service

logger = structlog.get_logger(__name__)

LOW_RATING_THRESHOLD = 2

PREFERENCE_FIELDS = (
    "email_enabled",
    "push_enabled",
    "sms_enabled",
    "notify_on_new_review",
    "notify_on_review_reply",
    "notify_on_low_rating",
)


class NotificationService:
    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    def get_preferences(self, user_id: int) -> NotificationPreference:
        """Return the user's preferences, creating the defaults on first access."""
        prefs = self.db.scalar(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        if prefs is None:
            prefs = NotificationPreference(
                user_id=user_id,
                email_enabled=True,
                push_enabled=False,
                sms_enabled=False,
                notify_on_new_review=True,
                notify_on_review_reply=True,
                notify_on_low_rating=True,
            )
            self.db.add(prefs)
            self.db.commit()
            self.db.refresh(prefs)
        return prefs

    def update_preferences(self, user_id: int, changes: dict[str, Any]) -> NotificationPreference:
        prefs = self.get_preferences(user_id)
        for field in PREFERENCE_FIELDS:
            if changes.get(field) is not None:
                setattr(prefs, field, bool(changes[field]))
        self.db.commit()
        self.db.refresh(prefs)
        return prefs

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_notification(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
            is_read=False,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    async def send_review_notification(
        self,
        business_id: int,
        platform: str,
        review: Review,
    ) -> Optional[Notification]:
        """Notify the business owner about a newly imported review.

        Returns the created notification, or None when the owner's
        preferences suppress it.
        """
        business = self.db.get(Business, business_id)
        if business is None:
            logger.warning("review_notification_business_missing", business_id=business_id)
            return None

        owner = self.db.get(User, business.user_id)
        if owner is None:
            return None

        prefs = self.get_preferences(owner.id)
        if not prefs.notify_on_new_review:
            return None

        is_low_rating = review.rating <= LOW_RATING_THRESHOLD
        if is_low_rating and not prefs.notify_on_low_rating:
            return None

        if is_low_rating:
            notification_type = NotificationType.LOW_RATING_ALERT
            title = f"Low Rating Alert - {platform}"
        else:
            notification_type = NotificationType.NEW_REVIEW
            title = f"New {platform} Review"

        notification = self.create_notification(
            user_id=owner.id,
            type=notification_type,
            title=title,
            message=f"{review.reviewer_name} left a {review.rating}-star review",
            data={"reviewId": review.id, "businessId": business_id, "platform": platform},
        )

        if prefs.email_enabled:
            sent = await self.email_service.send_new_review_notification(
                to_email=owner.email,
                business_name=business.name,
                reviewer_name=review.reviewer_name,
                rating=review.rating,
                review_text=review.review_text,
                platform=platform,
            )
            logger.info(
                "review_notification_email",
                user_id=owner.id,
                review_id=review.id,
                delivered=sent,
            )

        logger.info(
            "review_notification_created",
            notification_id=notification.id,
            user_id=owner.id,
            type=notification_type.value,
        )
        return notification

    # -------------------------------------------------------------------------
    # Inbox
    # -------------------------------------------------------------------------

    def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Notification], int]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        total = self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        items = self.db.scalars(
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(items), total

    def unread_count(self, user_id: int) -> int:
        return self.db.scalar(
            select(func.count(Notification.id))
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
        ) or 0

    def _get_owned(self, user_id: int, notification_id: int) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification")
        return notification

    def mark_as_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self._get_owned(user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        self.db.commit()
        return result.rowcount or 0

    def delete_notification(self, user_id: int, notification_id: int) -> None:
        notification = self._get_owned(user_id, notification_id)
        self.db.delete(notification)
        self.db.commit()
