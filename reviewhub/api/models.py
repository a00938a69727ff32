"""Pydantic models for API requests and responses.

Request bodies accept camelCase (as sent by the web client) or snake_case
field names; responses are serialized in camelCase.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from reviewhub.db.enums import ReviewPlatform


def _enum_text(value: Any) -> Any:
    """ReviewPlatform serializes by name ("Google"), str enums by value."""
    if isinstance(value, IntEnum):
        return value.name
    if isinstance(value, Enum):
        return value.value
    return value


EnumText = Annotated[str, BeforeValidator(_enum_text)]


def _platform(value: Any) -> Any:
    return ReviewPlatform.parse(value) if isinstance(value, str) else value


PlatformName = Annotated[ReviewPlatform, BeforeValidator(_platform)]

RoleType = Literal["Admin", "Member"]
ToneType = Literal["Professional", "Friendly", "Casual"]
LengthType = Literal["Short", "Medium", "Long"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Common
# =============================================================================


class MessageResponse(CamelModel):
    message: str


class PageInfo(CamelModel):
    total_count: int
    page: int
    page_size: int
    total_pages: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    path: Optional[str] = Field(None, description="Request path")
    timestamp: datetime = Field(..., description="Error timestamp")


class ValidationErrorDetail(BaseModel):
    """Validation error detail."""

    field: str = Field(..., description="Field that failed validation")
    message: str = Field(..., description="Validation error message")
    value: Optional[Any] = Field(None, description="Invalid value")


class ValidationErrorResponse(BaseModel):
    """Validation error response."""

    error: str = Field(default="validation_error", description="Error type")
    message: str = Field(default="Request validation failed", description="Error message")
    errors: list[ValidationErrorDetail] = Field(..., description="List of validation errors")
    timestamp: datetime = Field(..., description="Error timestamp")


class HealthStatus(BaseModel):
    """Health status for a single dependency."""

    status: Literal["healthy", "unhealthy", "degraded", "unknown"]
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Overall health check response."""

    status: Literal["healthy", "unhealthy", "degraded"]
    version: str
    environment: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None
    checks: dict[str, HealthStatus]


# =============================================================================
# Auth / Users
# =============================================================================


class RegisterRequest(CamelModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=50)


class UpdateProfileRequest(CamelModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=50)


class UserResponse(CamelModel):
    id: int
    email: str
    full_name: str
    company_name: Optional[str] = None
    phone_number: Optional[str] = None
    organization_id: Optional[int] = None
    subscription_plan: str
    subscription_expires_at: Optional[datetime] = None
    created_at: datetime


class RegisterResponse(CamelModel):
    user: UserResponse
    message: str


# =============================================================================
# Businesses
# =============================================================================


class BusinessCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    logo_url: Optional[str] = None


class BusinessUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    logo_url: Optional[str] = None


class BusinessResponse(CamelModel):
    id: int
    name: str
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class BusinessSummaryResponse(BusinessResponse):
    platform_connections_count: int = 0
    reviews_count: int = 0
    avg_rating: float = 0.0


class BusinessStats(CamelModel):
    total_reviews: int
    avg_rating: float
    unread_reviews: int
    flagged_reviews: int


class ConnectionSummary(CamelModel):
    id: int
    platform: EnumText
    connected_at: datetime
    last_synced_at: Optional[datetime] = None


class BusinessDetailResponse(BusinessResponse):
    platform_connections: list[ConnectionSummary] = Field(default_factory=list)
    stats: BusinessStats


# =============================================================================
# Reviews
# =============================================================================


class ReviewResponse(CamelModel):
    id: int
    business_id: int
    location_id: Optional[int] = None
    platform: EnumText
    platform_review_id: str
    reviewer_name: str
    reviewer_email: Optional[str] = None
    reviewer_avatar_url: Optional[str] = None
    rating: int
    review_text: Optional[str] = None
    review_date: datetime
    response_text: Optional[str] = None
    response_date: Optional[datetime] = None
    is_auto_replied: bool = False
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = None
    ai_suggested_response: Optional[str] = None
    is_read: bool
    is_flagged: bool


class ReviewListResponse(PageInfo):
    reviews: list[ReviewResponse]


class ReplyRequest(CamelModel):
    response_text: str = Field(..., min_length=1, max_length=4000)


class MarkReadRequest(CamelModel):
    is_read: bool = True


class FlagRequest(CamelModel):
    is_flagged: bool = True


# =============================================================================
# Locations
# =============================================================================


class LocationCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    organization_id: Optional[int] = None
    location_group_id: Optional[int] = None
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    manager_user_id: Optional[int] = None


class LocationUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    location_group_id: Optional[int] = None
    manager_user_id: Optional[int] = None


class LocationResponse(CamelModel):
    id: int
    organization_id: int
    location_group_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    manager_user_id: Optional[int] = None
    is_active: bool


class LocationGroupCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    organization_id: Optional[int] = None
    description: Optional[str] = None
    group_type: Optional[str] = None
    parent_group_id: Optional[int] = None


class LocationGroupResponse(CamelModel):
    id: int
    organization_id: int
    parent_group_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    group_type: Optional[str] = None
    level: int
    is_active: bool


class LocationComparison(CamelModel):
    location_id: int
    location_name: str
    total_reviews: int
    average_rating: float
    positive_sentiment: float
    neutral_sentiment: float
    negative_sentiment: float
    response_rate: float
    recent_reviews: int


# =============================================================================
# Integrations
# =============================================================================


class PlatformInfoResponse(CamelModel):
    id: int
    name: str
    display_name: str
    description: str
    icon: str
    supports_oauth: bool = Field(..., alias="supportsOAuth")
    is_coming_soon: bool


class ConnectRequest(CamelModel):
    business_id: int


class ConnectResponse(CamelModel):
    auth_url: str
    platform: str


class PlatformConnectionResponse(CamelModel):
    id: int
    business_id: int
    location_id: Optional[int] = None
    platform: EnumText
    platform_business_id: Optional[str] = None
    platform_business_name: Optional[str] = None
    connected_at: datetime
    last_synced_at: Optional[datetime] = None
    is_active: bool
    auto_sync: bool


class SyncResponse(CamelModel):
    message: str
    new_reviews: int


# =============================================================================
# Competitors
# =============================================================================


class AddCompetitorRequest(CamelModel):
    place_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=300)


class CreateCompetitorRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=300)
    platform: PlatformName
    platform_business_id: str = Field(..., min_length=1, max_length=300)


class UpdateCompetitorRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=300)
    platform_business_id: str = Field(..., min_length=1, max_length=300)


class CompetitorResponse(CamelModel):
    id: int
    business_id: int
    name: str
    platform: EnumText
    platform_business_id: str
    current_rating: Optional[float] = None
    total_reviews: int
    last_checked_at: Optional[datetime] = None
    is_active: bool


# =============================================================================
# Customers
# =============================================================================


class CustomerCreate(CamelModel):
    business_id: int
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class CustomerUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class CustomerResponse(CamelModel):
    id: int
    business_id: int
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    last_visit: Optional[datetime] = None
    total_visits: int
    notes: Optional[str] = None
    created_at: datetime


class CustomerListResponse(PageInfo):
    customers: list[CustomerResponse]


# =============================================================================
# Campaigns & SMS
# =============================================================================


class CampaignCreate(CamelModel):
    business_id: int
    name: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1600)
    recipients: list[str] = Field(default_factory=list)
    scheduled_for: Optional[datetime] = None


class CampaignUpdate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1600)
    scheduled_for: Optional[datetime] = None


class CampaignResponse(CamelModel):
    id: int
    business_id: int
    name: str
    message: str
    scheduled_for: Optional[datetime] = None
    status: EnumText
    sent_count: int
    total_recipients: int
    created_at: datetime
    sent_at: Optional[datetime] = None


class CampaignListResponse(PageInfo):
    campaigns: list[CampaignResponse]


class SendSmsRequest(CamelModel):
    business_id: int
    phone_number: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1, max_length=1600)


class SendSmsResponse(CamelModel):
    message_sid: str
    message: str


class SendBulkSmsRequest(CamelModel):
    business_id: int
    phone_numbers: list[str] = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=1600)
    campaign_name: Optional[str] = None


class SendBulkSmsResponse(CamelModel):
    sent_count: int
    total_requested: int
    failed: list[str]
    message: str


class SmsMessageResponse(CamelModel):
    id: int
    phone_number: str = Field(..., validation_alias="to_phone_number")
    message: str = Field(..., validation_alias="body")
    status: str
    sent_at: datetime
    twilio_sid: Optional[str] = None
    campaign_name: Optional[str] = None


class SmsMessageListResponse(PageInfo):
    messages: list[SmsMessageResponse]


class SmsUsageResponse(CamelModel):
    plan: str
    sent_this_month: int
    monthly_limit: Optional[int] = None
    remaining: Optional[int] = None
    percentage_used: float


# =============================================================================
# Notifications
# =============================================================================


class NotificationResponse(CamelModel):
    id: int
    type: EnumText
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None


class NotificationListResponse(PageInfo):
    notifications: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(CamelModel):
    count: int


class NotificationPreferencesResponse(CamelModel):
    email_enabled: bool
    push_enabled: bool
    sms_enabled: bool
    notify_on_new_review: bool
    notify_on_review_reply: bool
    notify_on_low_rating: bool


class NotificationPreferencesUpdate(CamelModel):
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    notify_on_new_review: Optional[bool] = None
    notify_on_review_reply: Optional[bool] = None
    notify_on_low_rating: Optional[bool] = None


# =============================================================================
# Team
# =============================================================================


class InviteRequest(CamelModel):
    email: EmailStr
    role: RoleType = "Member"


class UpdateRoleRequest(CamelModel):
    role: RoleType


class InvitationResponse(CamelModel):
    id: int
    business_id: int
    email: str
    role: str
    status: EnumText
    expires_at: datetime
    created_at: datetime


class TeamMemberResponse(CamelModel):
    user_id: int
    email: str
    full_name: str
    role: str
    joined_at: datetime


# =============================================================================
# AI
# =============================================================================


class AISettingsResponse(CamelModel):
    enable_auto_reply: bool
    auto_reply_to_positive: bool
    auto_reply_to_neutral: bool
    auto_reply_to_negative: bool
    auto_reply_to_questions: bool
    enable_ai_suggestions: bool
    enable_sentiment_analysis: bool
    enable_competitor_analysis: bool
    enable_insights_generation: bool
    response_tone: str
    response_length: str


class AISettingsUpdate(CamelModel):
    enable_auto_reply: Optional[bool] = None
    auto_reply_to_positive: Optional[bool] = None
    auto_reply_to_neutral: Optional[bool] = None
    auto_reply_to_negative: Optional[bool] = None
    auto_reply_to_questions: Optional[bool] = None
    enable_ai_suggestions: Optional[bool] = None
    enable_sentiment_analysis: Optional[bool] = None
    enable_competitor_analysis: Optional[bool] = None
    enable_insights_generation: Optional[bool] = None
    response_tone: Optional[ToneType] = None
    response_length: Optional[LengthType] = None


class GeneratedResponse(CamelModel):
    review_id: int
    response: str


class ImproveResponseRequest(CamelModel):
    response_text: Optional[str] = None
    instructions: Optional[str] = None


class InsightsResponse(CamelModel):
    business_id: int
    insights: str


class ReviewSummaryResponse(CamelModel):
    business_id: int
    days: int
    review_count: int
    summary: str


class RecommendationsResponse(CamelModel):
    business_id: int
    recommendations: list[str]


class SocialPostResponse(CamelModel):
    review_id: int
    platform: str
    post: str


# =============================================================================
# Subscription
# =============================================================================


class PlanResponse(CamelModel):
    id: str
    name: str
    price: int
    interval: str
    features: list[str]
    sms_limit: Optional[int] = None
    stripe_price_id: Optional[str] = None


class CurrentSubscriptionResponse(CamelModel):
    plan: str
    expires_at: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    is_active: bool
