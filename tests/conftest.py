"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- test_settings: Environment-backed Settings with a shared JWT secret
- engine / db_session: In-memory SQLite database with all tables
- make_user / make_business / make_review / ...: Row factories
- client: FastAPI TestClient bound to the test session
- auth_headers: Bearer header for a user, signed with the test secret
- fake_sms: AsyncMock stand-in for TwilioSmsService
"""

from datetime import timedelta
from itertools import count
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewhub.api.dependencies import reset_jwks_cache
from reviewhub.config.settings import get_settings
from reviewhub.core.circuit_breaker import reset_circuit_breakers
from reviewhub.db.base import utcnow
from reviewhub.db.enums import ReviewPlatform, SubscriptionPlan, sentiment_for_rating
from reviewhub.db.models import (
    Business,
    Customer,
    Location,
    LocationGroup,
    Organization,
    PlatformConnection,
    Review,
    User,
    UserLocationAccess,
)
from reviewhub.db.session import get_db, init_db
from reviewhub.services.ai_service import reset_ai_service
from reviewhub.services.email import get_email_service, reset_email_service
from reviewhub.services.sms import BulkSmsResult, get_sms_service, reset_sms_service

TEST_JWT_SECRET = "test-jwt-secret"

# Variables a developer's shell or .env could leak into the tests
_ISOLATED_ENV = (
    "AUTH0_DOMAIN",
    "AUTH0_AUDIENCE",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "AI_PROVIDER",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_FROM_NUMBER",
    "SENDGRID_API_KEY",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "YELP_CLIENT_ID",
    "YELP_CLIENT_SECRET",
    "FACEBOOK_APP_ID",
    "FACEBOOK_APP_SECRET",
    "GOOGLE_PLACES_API_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRO_PRICE_ID",
    "STRIPE_ENTERPRISE_PRICE_ID",
)


# =============================================================================
# Settings & Singletons
# =============================================================================


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Fresh settings per test; cached service singletons are dropped afterwards."""
    for key in _ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("FRONTEND_URL", "http://frontend.test")
    get_settings.cache_clear()

    yield get_settings()

    get_settings.cache_clear()
    reset_ai_service()
    reset_sms_service()
    reset_email_service()
    reset_circuit_breakers()
    reset_jwks_cache()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite shared by every connection of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

_sequence = count(1)


@pytest.fixture
def make_organization(db_session):
    def factory(name: str = "Acme Restaurants") -> Organization:
        org = Organization(name=name, hierarchy_levels=["Region", "Store"])
        db_session.add(org)
        db_session.commit()
        return org

    return factory


@pytest.fixture
def make_user(db_session):
    def factory(
        organization: Optional[Organization] = None,
        email: Optional[str] = None,
        plan: str = SubscriptionPlan.FREE.value,
        is_active: bool = True,
        full_name: str = "Test Owner",
        role: str = "User",
    ) -> User:
        n = next(_sequence)
        user = User(
            auth0_id=f"auth0|user{n}",
            email=email or f"user{n}@example.com",
            full_name=full_name,
            organization_id=organization.id if organization else None,
            subscription_plan=plan,
            is_active=is_active,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture
def make_business(db_session):
    def factory(owner: User, name: str = "Harbor Cafe", is_active: bool = True) -> Business:
        business = Business(
            user_id=owner.id,
            organization_id=owner.organization_id,
            name=name,
            is_active=is_active,
        )
        db_session.add(business)
        db_session.commit()
        return business

    return factory


@pytest.fixture
def make_review(db_session):
    def factory(
        business: Business,
        rating: int = 5,
        text: Optional[str] = "Great food and excellent service!",
        platform: ReviewPlatform = ReviewPlatform.Google,
        location: Optional[Location] = None,
        days_ago: float = 0,
        **fields,
    ) -> Review:
        n = next(_sequence)
        reviewer_name = fields.pop("reviewer_name", "Jamie Doe")
        review = Review(
            business_id=business.id,
            location_id=location.id if location else None,
            platform=platform,
            platform_review_id=f"ext-{n}",
            reviewer_name=reviewer_name,
            rating=rating,
            review_text=text,
            review_date=utcnow() - timedelta(days=days_ago),
            sentiment=sentiment_for_rating(rating).value,
            **fields,
        )
        db_session.add(review)
        db_session.commit()
        return review

    return factory


@pytest.fixture
def make_group(db_session):
    def factory(
        organization: Organization,
        name: str = "North",
        parent: Optional[LocationGroup] = None,
        is_active: bool = True,
    ) -> LocationGroup:
        group = LocationGroup(
            organization_id=organization.id,
            name=name,
            parent_group_id=parent.id if parent else None,
            level=parent.level + 1 if parent else 0,
            is_active=is_active,
        )
        db_session.add(group)
        db_session.commit()
        return group

    return factory


@pytest.fixture
def make_location(db_session):
    def factory(
        organization: Organization,
        name: str = "Store",
        group: Optional[LocationGroup] = None,
        is_active: bool = True,
    ) -> Location:
        location = Location(
            organization_id=organization.id,
            name=name,
            location_group_id=group.id if group else None,
            is_active=is_active,
        )
        db_session.add(location)
        db_session.commit()
        return location

    return factory


@pytest.fixture
def grant(db_session):
    """Insert a raw UserLocationAccess row."""

    def factory(
        user: User,
        organization: Organization,
        location: Optional[Location] = None,
        group: Optional[LocationGroup] = None,
        all_locations: bool = False,
    ) -> UserLocationAccess:
        row = UserLocationAccess(
            user_id=user.id,
            organization_id=organization.id,
            location_id=location.id if location else None,
            location_group_id=group.id if group else None,
            has_all_locations_access=all_locations,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return factory


@pytest.fixture
def make_connection(db_session):
    def factory(
        business: Business,
        platform: ReviewPlatform = ReviewPlatform.Google,
        platform_business_id: Optional[str] = "accounts/1/locations/1",
        **fields,
    ) -> PlatformConnection:
        fields.setdefault("access_token", "access-token")
        fields.setdefault("is_active", True)
        connection = PlatformConnection(
            business_id=business.id,
            platform=platform,
            platform_business_id=platform_business_id,
            **fields,
        )
        db_session.add(connection)
        db_session.commit()
        return connection

    return factory


@pytest.fixture
def make_customer(db_session):
    def factory(business: Business, phone_number: Optional[str] = "+15550000001", name: str = "Pat") -> Customer:
        customer = Customer(business_id=business.id, name=name, phone_number=phone_number)
        db_session.add(customer)
        db_session.commit()
        return customer

    return factory


# =============================================================================
# Doubles
# =============================================================================


@pytest.fixture
def fake_sms():
    """TwilioSmsService double; every number is delivered unless configured otherwise."""
    sms = MagicMock()
    sms.from_number = "+15559990000"
    sms.send_sms = AsyncMock(return_value="SM_single")

    async def send_bulk(recipients, body):
        return BulkSmsResult(sent=[(n, f"SM{i}") for i, n in enumerate(recipients)])

    sms.send_bulk_sms = AsyncMock(side_effect=send_bulk)
    return sms


@pytest.fixture
def fake_email():
    email = MagicMock()
    email.send_team_invitation = AsyncMock(return_value=True)
    email.send_new_review_notification = AsyncMock(return_value=True)
    email.send_welcome_email = AsyncMock(return_value=True)
    return email


# =============================================================================
# API
# =============================================================================


def make_token(sub: str, secret: str = TEST_JWT_SECRET, **claims) -> str:
    return jwt.encode({"sub": sub, **claims}, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def factory(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user.auth0_id)}"}

    return factory


@pytest.fixture
def bearer():
    """Authorization header for an arbitrary token subject, registered or not."""

    def factory(sub: str, secret: str = TEST_JWT_SECRET) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub, secret)}"}

    return factory


@pytest.fixture
def app(db_session, fake_sms, fake_email):
    """The API with the database, Twilio and SendGrid swapped for test doubles."""
    from reviewhub.api.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_service] = lambda: fake_sms
    app.dependency_overrides[get_email_service] = lambda: fake_email
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """TestClient without the lifespan, so no scheduler or table creation on the real engine."""
    return TestClient(app)
