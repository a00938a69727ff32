"""In-app notification inbox and delivery preferences for the caller."""

import math

from fastapi import APIRouter, Depends, Query

from reviewhub.api.dependencies import get_current_user, get_notification_service
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    MessageResponse,
    NotificationListResponse,
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    NotificationResponse,
    UnreadCountResponse,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.models import User
from reviewhub.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="List notifications")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    items, total = service.list_notifications(user.id, unread_only, page, page_size)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        unread_count=service.unread_count(user.id),
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Unread count")
async def unread_count(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=service.unread_count(user.id))


@router.put("/mark-all-read", response_model=MessageResponse, summary="Mark everything read")
async def mark_all_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> MessageResponse:
    updated = service.mark_all_as_read(user.id)
    return MessageResponse(message=f"Marked {updated} notifications as read")


@router.get("/preferences", response_model=NotificationPreferencesResponse, summary="Preferences")
async def get_preferences(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPreferencesResponse:
    """Created with defaults on first access."""
    return NotificationPreferencesResponse.model_validate(service.get_preferences(user.id))


@router.put("/preferences", response_model=NotificationPreferencesResponse, summary="Update preferences")
async def update_preferences(
    request: NotificationPreferencesUpdate,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPreferencesResponse:
    prefs = service.update_preferences(user.id, request.model_dump(exclude_none=True))
    return NotificationPreferencesResponse.model_validate(prefs)


@router.put("/{notification_id}/read", response_model=NotificationResponse, summary="Mark read")
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationResponse:
    try:
        return NotificationResponse.model_validate(service.mark_as_read(user.id, notification_id))
    except ReviewHubError as e:
        raise http_error(e) from e


@router.delete("/{notification_id}", response_model=MessageResponse, summary="Delete a notification")
async def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> MessageResponse:
    try:
        service.delete_notification(user.id, notification_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return MessageResponse(message="Notification deleted")
