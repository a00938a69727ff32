"""SQLAlchemy ORM models for tenants, businesses, locations and reviews."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewhub.db.base import Base, utcnow
from reviewhub.db.enums import (
    CampaignStatus,
    InvitationStatus,
    NotificationType,
    ReviewPlatform,
    SubscriptionPlan,
)


def _str_enum(enum_cls) -> SAEnum:
    """Store a str Enum by its value ("Pending") rather than its member name."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


def _platform_enum() -> SAEnum:
    return SAEnum(ReviewPlatform, native_enum=False, length=32)


# =============================================================================
# Tenants & Users
# =============================================================================


class Organization(Base):
    """
    A tenant owning locations and location groups.

    Users belong to at most one organization; location access grants are
    always scoped by organization_id.
    """

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(String(500))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    logo_url: Mapped[Optional[str]] = mapped_column(String(500))
    # Display names of hierarchy tiers, e.g. ["Region", "District", "Store"]
    hierarchy_levels: Mapped[list[str]] = mapped_column(JSON, default=list)
    subscription_plan: Mapped[str] = mapped_column(
        String(32), default=SubscriptionPlan.FREE.value
    )
    max_locations: Mapped[int] = mapped_column(Integer, default=1)
    max_users: Mapped[int] = mapped_column(Integer, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    locations: Mapped[list["Location"]] = relationship(back_populates="organization")
    location_groups: Mapped[list["LocationGroup"]] = relationship(back_populates="organization")
    users: Mapped[list["User"]] = relationship(back_populates="organization")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    auth0_id: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    organization_id: Mapped[Optional[int]] = mapped_column(ForeignKey("organizations.id"))
    role: Mapped[str] = mapped_column(String(32), default="User")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(100))
    subscription_plan: Mapped[str] = mapped_column(
        String(32), default=SubscriptionPlan.FREE.value
    )
    subscription_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    organization: Mapped[Optional[Organization]] = relationship(back_populates="users")
    businesses: Mapped[list["Business"]] = relationship(back_populates="owner")


# =============================================================================
# Businesses & Team
# =============================================================================


class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    organization_id: Mapped[Optional[int]] = mapped_column(ForeignKey("organizations.id"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(String(500))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    logo_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    owner: Mapped[User] = relationship(back_populates="businesses")
    reviews: Mapped[list["Review"]] = relationship(back_populates="business")
    platform_connections: Mapped[list["PlatformConnection"]] = relationship(
        back_populates="business", cascade="all, delete-orphan"
    )
    members: Mapped[list["BusinessUser"]] = relationship(back_populates="business")


class BusinessUser(Base):
    """Team membership of a user in a business (Owner/Admin/Member)."""

    __tablename__ = "business_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    business: Mapped[Business] = relationship(back_populates="members")
    user: Mapped[User] = relationship()

    __table_args__ = (Index("ix_business_users_business_user", "business_id", "user_id"),)


class TeamInvitation(Base):
    __tablename__ = "team_invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    invited_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        _str_enum(InvitationStatus), default=InvitationStatus.PENDING
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    accepted_by_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))

    business: Mapped[Business] = relationship()
    invited_by: Mapped[User] = relationship(foreign_keys=[invited_by_user_id])


# =============================================================================
# Locations & Access
# =============================================================================


class LocationGroup(Base):
    """
    Named grouping of locations (region, district, ...).

    Groups form a tree through parent_group_id; level is the depth from the
    root (root groups are level 0).
    """

    __tablename__ = "location_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    parent_group_id: Mapped[Optional[int]] = mapped_column(ForeignKey("location_groups.id"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    group_type: Mapped[Optional[str]] = mapped_column(String(50))
    level: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship(back_populates="location_groups")
    parent_group: Mapped[Optional["LocationGroup"]] = relationship(
        back_populates="child_groups", remote_side=[id]
    )
    child_groups: Mapped[list["LocationGroup"]] = relationship(back_populates="parent_group")
    locations: Mapped[list["Location"]] = relationship(back_populates="location_group")


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    location_group_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("location_groups.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(String(500))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    website: Mapped[Optional[str]] = mapped_column(String(500))
    business_hours: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    manager_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship(back_populates="locations")
    location_group: Mapped[Optional[LocationGroup]] = relationship(back_populates="locations")
    manager: Mapped[Optional[User]] = relationship()


class UserLocationAccess(Base):
    """
    One access grant. Exactly one of the three forms is used per row:
    has_all_locations_access, location_id or location_group_id.
    """

    __tablename__ = "user_location_access"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    has_all_locations_access: Mapped[bool] = mapped_column(Boolean, default=False)
    location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"))
    location_group_id: Mapped[Optional[int]] = mapped_column(ForeignKey("location_groups.id"))
    permissions: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# =============================================================================
# Reviews & Platforms
# =============================================================================


class PlatformConnection(Base):
    """Stored OAuth credentials linking a business to a review source."""

    __tablename__ = "platform_connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"))
    platform: Mapped[ReviewPlatform] = mapped_column(_platform_enum(), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    platform_business_id: Mapped[Optional[str]] = mapped_column(String(300))
    platform_business_name: Mapped[Optional[str]] = mapped_column(String(300))
    platform_account_id: Mapped[Optional[str]] = mapped_column(String(300))
    platform_account_email: Mapped[Optional[str]] = mapped_column(String(320))
    connected_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_sync: Mapped[bool] = mapped_column(Boolean, default=True)
    sync_interval_minutes: Mapped[int] = mapped_column(Integer, default=60)

    business: Mapped[Business] = relationship(back_populates="platform_connections")


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"), index=True)
    platform: Mapped[ReviewPlatform] = mapped_column(_platform_enum(), nullable=False)
    platform_review_id: Mapped[str] = mapped_column(String(300), nullable=False)
    reviewer_name: Mapped[str] = mapped_column(String(200), default="Anonymous")
    reviewer_email: Mapped[Optional[str]] = mapped_column(String(320))
    reviewer_avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_text: Mapped[Optional[str]] = mapped_column(Text)
    review_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    response_text: Mapped[Optional[str]] = mapped_column(Text)
    response_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    responder_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    is_auto_replied: Mapped[bool] = mapped_column(Boolean, default=False)
    sentiment: Mapped[Optional[str]] = mapped_column(String(20))
    sentiment_score: Mapped[Optional[float]] = mapped_column(Float)
    ai_suggested_response: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[Optional[str]] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    business: Mapped[Business] = relationship(back_populates="reviews")

    __table_args__ = (
        Index("ix_reviews_business_platform_external", "business_id", "platform", "platform_review_id"),
        Index("ix_reviews_business_date", "business_id", "review_date"),
    )


class Competitor(Base):
    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    platform: Mapped[ReviewPlatform] = mapped_column(_platform_enum(), nullable=False)
    platform_business_id: Mapped[str] = mapped_column(String(300), nullable=False)
    current_rating: Mapped[Optional[float]] = mapped_column(Float)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    business: Mapped[Business] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "business_id", "platform", "platform_business_id",
            name="uq_competitors_business_platform_external",
        ),
    )


# =============================================================================
# Customers, Campaigns & SMS
# =============================================================================


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    last_visit: Mapped[Optional[datetime]] = mapped_column(DateTime)
    total_visits: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    business: Mapped[Business] = relationship()


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[CampaignStatus] = mapped_column(
        _str_enum(CampaignStatus), default=CampaignStatus.DRAFT
    )
    sent_count: Mapped[int] = mapped_column(Integer, default=0)
    total_recipients: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    business: Mapped[Business] = relationship()


class SmsMessage(Base):
    """One outbound SMS; also the source of truth for monthly quota counts."""

    __tablename__ = "sms_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id"), nullable=False)
    to_phone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    from_phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    body: Mapped[str] = mapped_column(Text, nullable=False)
    twilio_sid: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(32), default="sent")
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    campaign_name: Mapped[Optional[str]] = mapped_column(String(200))
    purpose: Mapped[Optional[str]] = mapped_column(String(100))
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (Index("ix_sms_messages_business_sent", "business_id", "sent_at"),)


# =============================================================================
# Notifications & Settings
# =============================================================================


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[NotificationType] = mapped_column(_str_enum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    notify_on_new_review: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_on_review_reply: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_on_low_rating: Mapped[bool] = mapped_column(Boolean, default=True)


class AISettings(Base):
    """Per-user switches for AI features and unattended replies."""

    __tablename__ = "ai_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    enable_auto_reply: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_reply_to_positive: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_reply_to_neutral: Mapped[bool] = mapped_column(Boolean, default=False)
    # Always False; settings updates cannot enable it
    auto_reply_to_negative: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_reply_to_questions: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_ai_suggestions: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_sentiment_analysis: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_competitor_analysis: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_insights_generation: Mapped[bool] = mapped_column(Boolean, default=True)
    response_tone: Mapped[str] = mapped_column(String(32), default="Professional")
    response_length: Mapped[str] = mapped_column(String(32), default="Medium")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
