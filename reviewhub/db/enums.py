"""Enumerations shared by the ORM models, services and API schemas."""

from enum import Enum, IntEnum


class ReviewPlatform(IntEnum):
    """External review sources. Values are stable public identifiers."""

    Google = 1
    Yelp = 2
    Facebook = 3
    TripAdvisor = 4
    Zomato = 5
    Trustpilot = 6
    Amazon = 7
    BookingCom = 8
    OpenTable = 9
    Foursquare = 10

    @classmethod
    def parse(cls, value: str) -> "ReviewPlatform":
        """Case-insensitive lookup by name or numeric id.

        Raises:
            ValueError: If nothing matches.
        """
        text = value.strip()
        if text.isdigit():
            return cls(int(text))
        for member in cls:
            if member.name.lower() == text.lower():
                return member
        raise ValueError(f"Unknown platform: {value}")


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class TeamRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"


class InvitationStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    EXPIRED = "Expired"
    REVOKED = "Revoked"


class CampaignStatus(str, Enum):
    DRAFT = "Draft"
    SCHEDULED = "Scheduled"
    SENDING = "Sending"
    SENT = "Sent"
    FAILED = "Failed"


class NotificationType(str, Enum):
    NEW_REVIEW = "NewReview"
    REVIEW_REPLY = "ReviewReply"
    LOW_RATING_ALERT = "LowRatingAlert"
    SYSTEM_ALERT = "SystemAlert"
    SUBSCRIPTION_EXPIRING = "SubscriptionExpiring"
    SYNC_COMPLETED = "SyncCompleted"


class ResponseTone(str, Enum):
    PROFESSIONAL = "Professional"
    FRIENDLY = "Friendly"
    CASUAL = "Casual"


class ResponseLength(str, Enum):
    SHORT = "Short"
    MEDIUM = "Medium"
    LONG = "Long"


class SubscriptionPlan(str, Enum):
    FREE = "Free"
    PRO = "Pro"
    ENTERPRISE = "Enterprise"


def sentiment_for_rating(rating: int) -> Sentiment:
    """Coarse sentiment label derived from a star rating."""
    if rating >= 4:
        return Sentiment.POSITIVE
    if rating == 3:
        return Sentiment.NEUTRAL
    return Sentiment.NEGATIVE
