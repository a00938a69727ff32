"""
Unattended review replies.

Each sweep looks at reviews imported in the last day that nobody has
answered, checks the owner's AI settings, and posts an AI-written reply
when the settings allow it. Negative reviews are never auto-answered.
"""

from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.db.base import utcnow
from reviewhub.db.models import AISettings, Business, Review
from reviewhub.services.ai_service import AIService, get_ai_service, should_auto_reply

logger = structlog.get_logger(__name__)


LOOKBACK = timedelta(hours=24)


class AutoReplyService:
    def __init__(self, db: Session, ai_service: Optional[AIService] = None):
        self.db = db
        self._ai_service = ai_service

    @property
    def ai(self) -> AIService:
        # AIService raises ConfigurationError without a provider key
        if self._ai_service is None:
            self._ai_service = get_ai_service()
        return self._ai_service

    def pending_reviews(self) -> list[Review]:
        return list(
            self.db.scalars(
                select(Review)
                .where(Review.response_text.is_(None))
                .where(Review.created_at >= utcnow() - LOOKBACK)
                .order_by(Review.created_at)
            ).all()
        )

    async def _asks_question(self, text: str) -> bool:
        return await self.ai.contains_question(text)

    def _owner_settings(self, business: Business) -> Optional[AISettings]:
        return self.db.scalar(select(AISettings).where(AISettings.user_id == business.user_id))

    async def run_once(self) -> int:
        """Reply to every eligible review. Returns how many replies were posted."""
        replied = 0
        for review in self.pending_reviews():
            try:
                business = self.db.get(Business, review.business_id)
                if business is None:
                    continue

                settings = self._owner_settings(business)
                if not await should_auto_reply(review, settings, self._asks_question):
                    continue

                reply = await self.ai.generate_review_response(
                    review,
                    business.name,
                    tone=settings.response_tone,
                    length=settings.response_length,
                )
                review.response_text = reply
                review.response_date = utcnow()
                review.is_auto_replied = True
                self.db.commit()
                replied += 1

                logger.info("auto_reply_posted", review_id=review.id, business_id=business.id)
            except Exception as e:
                self.db.rollback()
                logger.error("auto_reply_failed", review_id=review.id, error=str(e))

        if replied:
            logger.info("auto_reply_sweep_complete", replied=replied)
        return replied
