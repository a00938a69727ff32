"""Account endpoints: registration and profile for the authenticated caller."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_token_claims
from reviewhub.api.models import (
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    UpdateProfileRequest,
    UserResponse,
)
from reviewhub.db.enums import SubscriptionPlan
from reviewhub.db.models import User
from reviewhub.db.session import get_db
from reviewhub.services.email import EmailService, get_email_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    summary="Register the authenticated identity",
    responses={400: {"model": ErrorResponse, "description": "Email already in use"}},
)
async def register(
    request: RegisterRequest,
    claims: dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> RegisterResponse:
    """
    Create the ReviewHub user for the token's subject.

    Registering an identity that already has a user is not an error; the
    existing user is returned unchanged.
    """
    auth0_id = claims["sub"]
    existing = db.scalar(select(User).where(User.auth0_id == auth0_id))
    if existing is not None:
        return RegisterResponse(
            user=UserResponse.model_validate(existing),
            message="User already registered",
        )

    email = str(request.email).lower()
    if db.scalar(select(User.id).where(func.lower(User.email) == email)) is not None:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        auth0_id=auth0_id,
        email=email,
        full_name=request.full_name,
        company_name=request.company_name,
        phone_number=request.phone_number,
        subscription_plan=SubscriptionPlan.FREE.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id)

    delivered = await email_service.send_welcome_email(user.email, user.full_name)
    if not delivered:
        logger.warning("welcome_email_not_sent", user_id=user.id)

    return RegisterResponse(
        user=UserResponse.model_validate(user),
        message="Registration successful",
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
    responses={404: {"description": "Identity has not registered yet"}},
)
async def me(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = db.scalar(select(User).where(User.auth0_id == claims["sub"]))
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"message": "User not found", "needsRegistration": True},
        )
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive. Please contact support.")
    return UserResponse.model_validate(user)


@router.put("/profile", response_model=UserResponse, summary="Update profile")
async def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Only fields present in the body are changed."""
    for field, value in request.model_dump(exclude_none=True).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("profile_updated", user_id=user.id)
    return UserResponse.model_validate(user)
