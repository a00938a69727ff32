"""
Review analytics.

Read-only aggregations over a business's reviews, optionally narrowed to
one location. Rows are loaded with a single filtered query and aggregated
in Python; percentages and averages are rounded to one decimal place.
"""

import re
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from statistics import median
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.db.base import utcnow
from reviewhub.db.enums import Sentiment
from reviewhub.db.models import Location, PlatformConnection, Review
from reviewhub.services.sms import get_usage

logger = structlog.get_logger(__name__)


STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "from", "is", "was", "are", "were", "been", "be", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "can", "this", "that", "these", "those", "i", "you", "he",
        "she", "it", "we", "they", "my", "your", "his", "her", "its", "our",
        "their", "very", "really", "just", "so",
    }
)

WORD_SPLIT = re.compile(r"[ .,!?]+")

RECENT_REVIEW_COUNT = 5
RESPONSE_WINDOW_HOURS = 24
COMPARISON_RECENT_DAYS = 30


def _round(value: float, digits: int = 1) -> float:
    return round(value, digits)


def _percentage(part: int, whole: int) -> float:
    return _round(part / whole * 100) if whole else 0.0


def _average_rating(reviews: Sequence[Review]) -> float:
    return _round(sum(r.rating for r in reviews) / len(reviews)) if reviews else 0.0


def _sentiment_counts(reviews: Sequence[Review]) -> dict[str, int]:
    counts = Counter(r.sentiment for r in reviews)
    return {
        "positive": counts[Sentiment.POSITIVE.value],
        "neutral": counts[Sentiment.NEUTRAL.value],
        "negative": counts[Sentiment.NEGATIVE.value],
    }


def _has_response(review: Review) -> bool:
    return bool(review.response_text)


def months_ago(moment: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    next_month = datetime(year + (month == 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def extract_top_keywords(texts: Sequence[Optional[str]], limit: int = 10) -> list[dict[str, Any]]:
    """Most frequent non-stop-words longer than three characters."""
    counter: Counter[str] = Counter()
    for text in texts:
        if not text:
            continue
        counter.update(
            word
            for word in WORD_SPLIT.split(text.lower())
            if len(word) > 3 and word not in STOP_WORDS
        )
    return [{"keyword": word, "count": count} for word, count in counter.most_common(limit)]


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def _reviews(
        self,
        business_id: int,
        location_id: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> list[Review]:
        query = select(Review).where(Review.business_id == business_id)
        if location_id is not None:
            query = query.where(Review.location_id == location_id)
        if since is not None:
            query = query.where(Review.review_date >= since)
        return list(self.db.scalars(query.order_by(Review.review_date)).all())

    # -------------------------------------------------------------------------
    # Business analytics
    # -------------------------------------------------------------------------

    def overview(self, business_id: int, location_id: Optional[int] = None) -> dict[str, Any]:
        reviews = self._reviews(business_id, location_id)
        total = len(reviews)

        now = utcnow()
        last_month = months_ago(now, 1)
        this_month_count = sum(
            1 for r in reviews if (r.review_date.year, r.review_date.month) == (now.year, now.month)
        )
        last_month_count = sum(
            1
            for r in reviews
            if (r.review_date.year, r.review_date.month) == (last_month.year, last_month.month)
        )
        monthly_change = (
            _round((this_month_count - last_month_count) / last_month_count * 100)
            if last_month_count
            else 0.0
        )

        return {
            "totalReviews": total,
            "averageRating": _average_rating(reviews),
            "responseRate": _percentage(sum(1 for r in reviews if _has_response(r)), total),
            "sentimentBreakdown": _sentiment_counts(reviews),
            "thisMonthReviews": this_month_count,
            "monthlyChange": monthly_change,
        }

    def rating_trend(
        self, business_id: int, months: int = 6, location_id: Optional[int] = None
    ) -> list[dict[str, Any]]:
        reviews = self._reviews(business_id, location_id, since=months_ago(utcnow(), months))

        buckets: dict[tuple[int, int], list[Review]] = defaultdict(list)
        for review in reviews:
            buckets[(review.review_date.year, review.review_date.month)].append(review)

        return [
            {
                "month": datetime(year, month, 1).strftime("%b %Y"),
                "averageRating": _average_rating(bucket),
                "reviewCount": len(bucket),
            }
            for (year, month), bucket in sorted(buckets.items())
        ]

    def platform_breakdown(self, business_id: int, location_id: Optional[int] = None) -> list[dict[str, Any]]:
        buckets: dict[str, list[Review]] = defaultdict(list)
        for review in self._reviews(business_id, location_id):
            buckets[review.platform.name].append(review)

        rows = []
        for platform, bucket in buckets.items():
            sentiment = _sentiment_counts(bucket)
            rows.append(
                {
                    "platform": platform,
                    "totalReviews": len(bucket),
                    "averageRating": _average_rating(bucket),
                    "positiveCount": sentiment["positive"],
                    "neutralCount": sentiment["neutral"],
                    "negativeCount": sentiment["negative"],
                }
            )
        return sorted(rows, key=lambda row: row["totalReviews"], reverse=True)

    def sentiment_analysis(
        self, business_id: int, days: int = 30, location_id: Optional[int] = None
    ) -> dict[str, Any]:
        reviews = self._reviews(business_id, location_id, since=utcnow() - timedelta(days=days))

        by_day: dict[str, list[Review]] = defaultdict(list)
        for review in reviews:
            by_day[review.review_date.date().isoformat()].append(review)

        def average_score(bucket: Sequence[Review]) -> float:
            if not bucket:
                return 0.0
            return round(sum(r.sentiment_score or 0.0 for r in bucket) / len(bucket), 2)

        trend = [
            {"date": day, **_sentiment_counts(bucket), "averageSentimentScore": average_score(bucket)}
            for day, bucket in sorted(by_day.items())
        ]
        return {
            "sentimentTrend": trend,
            "overallSentiment": {**_sentiment_counts(reviews), "averageScore": average_score(reviews)},
        }

    def top_keywords(self, business_id: int, limit: int = 10, location_id: Optional[int] = None) -> list[dict[str, Any]]:
        return extract_top_keywords([r.review_text for r in self._reviews(business_id, location_id)], limit)

    def response_time(self, business_id: int) -> dict[str, Any]:
        hours = [
            (r.response_date - r.review_date).total_seconds() / 3600
            for r in self._reviews(business_id)
            if r.response_date is not None
        ]
        within_window = sum(1 for h in hours if h <= RESPONSE_WINDOW_HOURS)
        return {
            "averageResponseTimeHours": _round(sum(hours) / len(hours)) if hours else 0.0,
            "medianResponseTimeHours": _round(median(hours)) if hours else 0.0,
            "totalResponses": len(hours),
            "within24Hours": within_window,
            "within24HoursPercentage": _percentage(within_window, len(hours)),
        }

    def dashboard_summary(
        self,
        business_id: int,
        plan: Optional[str],
        location_id: Optional[int] = None,
    ) -> dict[str, Any]:
        reviews = self._reviews(business_id, location_id)
        connected = self.db.scalar(
            select(func.count(PlatformConnection.id))
            .where(PlatformConnection.business_id == business_id)
            .where(PlatformConnection.is_active.is_(True))
        ) or 0
        usage = get_usage(self.db, business_id, plan)

        recent = sorted(reviews, key=lambda r: r.review_date, reverse=True)[:RECENT_REVIEW_COUNT]
        return {
            "totalReviews": len(reviews),
            "averageRating": _average_rating(reviews),
            "unreadReviews": sum(1 for r in reviews if not r.is_read),
            "connectedPlatforms": connected,
            "smsUsage": {
                "sent": usage.sent_this_month,
                "limit": usage.monthly_limit,
                "remaining": usage.remaining,
            },
            "subscriptionPlan": usage.plan,
            "recentReviews": [
                {
                    "id": r.id,
                    "platform": r.platform.name,
                    "reviewerName": r.reviewer_name,
                    "rating": r.rating,
                    "reviewDate": r.review_date,
                }
                for r in recent
            ],
        }

    # -------------------------------------------------------------------------
    # Multi-location
    # -------------------------------------------------------------------------

    def compare_locations(self, location_ids: Sequence[int]) -> list[dict[str, Any]]:
        """Side-by-side review metrics; locations without reviews report zeros."""
        if not location_ids:
            return []

        names = dict(
            self.db.execute(select(Location.id, Location.name).where(Location.id.in_(location_ids))).all()
        )
        reviews = self.db.scalars(select(Review).where(Review.location_id.in_(location_ids))).all()

        by_location: dict[int, list[Review]] = defaultdict(list)
        for review in reviews:
            by_location[review.location_id].append(review)

        recent_cutoff = utcnow() - timedelta(days=COMPARISON_RECENT_DAYS)
        results = []
        for location_id in dict.fromkeys(location_ids):
            bucket = by_location.get(location_id, [])
            total = len(bucket)
            sentiment = _sentiment_counts(bucket)
            results.append(
                {
                    "locationId": location_id,
                    "locationName": names.get(location_id, "Unknown"),
                    "totalReviews": total,
                    "averageRating": _average_rating(bucket),
                    "positiveSentiment": _percentage(sentiment["positive"], total),
                    "neutralSentiment": _percentage(sentiment["neutral"], total),
                    "negativeSentiment": _percentage(sentiment["negative"], total),
                    "responseRate": _percentage(sum(1 for r in bucket if _has_response(r)), total),
                    "recentReviews": sum(1 for r in bucket if r.review_date >= recent_cutoff),
                }
            )
        return results
