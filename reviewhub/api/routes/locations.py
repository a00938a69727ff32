"""Multi-location endpoints: locations, location groups and access grants.

Visibility of every location is decided by the location access resolver;
callers only ever see locations in their resolved access set.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import (
    get_analytics_service,
    get_current_user,
    get_location_service,
)
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    ErrorResponse,
    LocationComparison,
    LocationCreate,
    LocationGroupCreate,
    LocationGroupResponse,
    LocationResponse,
    LocationUpdate,
    MessageResponse,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.enums import TeamRole
from reviewhub.db.models import Location, LocationGroup, User
from reviewhub.db.session import get_db
from reviewhub.services.analytics import AnalyticsService
from reviewhub.services.location_access import LocationService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/locations", tags=["Locations"])

_FORBIDDEN = "You don't have access to this location"

# Organization roles allowed to grant location access
ACCESS_MANAGER_ROLES = frozenset({TeamRole.OWNER.value, TeamRole.ADMIN.value})


def _require_organization(user: User, organization_id: Optional[int] = None) -> int:
    """The caller's organization; an explicit different one is refused."""
    if user.organization_id is None:
        raise HTTPException(status_code=400, detail="User not assigned to organization")
    if organization_id is not None and organization_id != user.organization_id:
        raise HTTPException(status_code=403, detail="You don't have access to this organization")
    return user.organization_id


def _require_colleague(db: Session, caller: User, user_id: int) -> User:
    """The grant target, provided the caller manages access in the same organization."""
    organization_id = _require_organization(caller)
    if caller.role not in ACCESS_MANAGER_ROLES:
        raise HTTPException(status_code=403, detail="Only organization owners and admins can manage location access")
    target = db.get(User, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    if target.organization_id != organization_id:
        raise HTTPException(status_code=403, detail="User belongs to a different organization")
    return target


def _accessible_location(
    location_id: int, user: User, db: Session, service: LocationService
) -> Location:
    if not service.user_has_access_to_location(user.id, location_id):
        raise HTTPException(status_code=403, detail=_FORBIDDEN)
    location = db.get(Location, location_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


# =============================================================================
# Locations
# =============================================================================


@router.get("", response_model=list[LocationResponse], summary="Accessible locations")
async def list_locations(
    user: User = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
) -> list[LocationResponse]:
    return [LocationResponse.model_validate(loc) for loc in service.get_user_accessible_locations(user.id)]


@router.get("/groups", response_model=list[LocationGroupResponse], summary="Location groups")
async def list_location_groups(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LocationGroupResponse]:
    """Active groups of the caller's organization, shallowest level first."""
    organization_id = _require_organization(user)
    groups = db.scalars(
        select(LocationGroup)
        .where(LocationGroup.organization_id == organization_id)
        .where(LocationGroup.is_active.is_(True))
        .order_by(LocationGroup.level, LocationGroup.name)
    ).all()
    return [LocationGroupResponse.model_validate(g) for g in groups]


@router.post(
    "/groups",
    response_model=LocationGroupResponse,
    status_code=201,
    summary="Create a location group",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_location_group(
    request: LocationGroupCreate,
    user: User = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
) -> LocationGroupResponse:
    organization_id = _require_organization(user, request.organization_id)
    try:
        group = service.create_location_group(
            organization_id=organization_id,
            name=request.name,
            description=request.description,
            group_type=request.group_type,
            parent_group_id=request.parent_group_id,
        )
    except ReviewHubError as e:
        raise http_error(e) from e
    return LocationGroupResponse.model_validate(group)


@router.get(
    "/groups/{group_id}/locations",
    response_model=list[LocationResponse],
    summary="Locations in a group",
)
async def list_group_locations(
    group_id: int,
    recursive: bool = Query(True),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> list[LocationResponse]:
    """Active locations of the group; descendant groups are included unless ``recursive=false``."""
    group = db.get(LocationGroup, group_id)
    if group is None or group.organization_id != user.organization_id:
        raise HTTPException(status_code=404, detail="Location group not found")
    return [LocationResponse.model_validate(loc) for loc in service.get_locations_in_group(group_id, recursive)]


@router.get(
    "/compare",
    response_model=list[LocationComparison],
    summary="Compare locations",
    responses={403: {"model": ErrorResponse, "description": "A location is not accessible"}},
)
async def compare_locations(
    location_ids: str = Query(..., alias="locationIds", description="Comma-separated location ids"),
    user: User = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> list[LocationComparison]:
    try:
        ids = [int(part) for part in location_ids.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail="locationIds must be comma-separated integers")
    if not ids:
        raise HTTPException(status_code=400, detail="At least one location id is required")

    accessible = service.get_user_accessible_location_ids(user.id)
    if any(location_id not in accessible for location_id in ids):
        raise HTTPException(status_code=403, detail="You don't have access to one or more locations")

    return [LocationComparison.model_validate(row) for row in analytics.compare_locations(ids)]


@router.get("/{location_id}", response_model=LocationResponse, summary="Location detail")
async def get_location(
    location_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    return LocationResponse.model_validate(_accessible_location(location_id, user, db, service))


@router.post("", response_model=LocationResponse, status_code=201, summary="Create a location")
async def create_location(
    request: LocationCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    organization_id = _require_organization(user, request.organization_id)
    if request.location_group_id is not None:
        group = db.get(LocationGroup, request.location_group_id)
        if group is None or group.organization_id != organization_id:
            raise HTTPException(status_code=404, detail="Location group not found")

    fields = request.model_dump(exclude={"organization_id", "name"}, exclude_none=True)
    location = service.create_location(organization_id, request.name, **fields)
    return LocationResponse.model_validate(location)


@router.put("/{location_id}", response_model=LocationResponse, summary="Update a location")
async def update_location(
    location_id: int,
    request: LocationUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    location = _accessible_location(location_id, user, db, service)
    for field, value in request.model_dump(exclude_none=True).items():
        setattr(location, field, value)
    db.commit()
    db.refresh(location)
    logger.info("location_updated", location_id=location.id, user_id=user.id)
    return LocationResponse.model_validate(location)


@router.delete("/{location_id}", response_model=MessageResponse, summary="Deactivate a location")
async def delete_location(
    location_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> MessageResponse:
    location = _accessible_location(location_id, user, db, service)
    location.is_active = False
    db.commit()
    logger.info("location_deactivated", location_id=location.id, user_id=user.id)
    return MessageResponse(message="Location deleted successfully")


# =============================================================================
# Access grants
# =============================================================================


@router.post(
    "/access/user/{user_id}/locations",
    response_model=MessageResponse,
    summary="Grant individual locations",
)
async def assign_locations(
    user_id: int,
    location_ids: list[int] = Body(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> MessageResponse:
    """Replaces the user's individual location grants with the given ids."""
    target = _require_colleague(db, user, user_id)
    if location_ids:
        found = set(
            db.scalars(
                select(Location.id)
                .where(Location.id.in_(location_ids))
                .where(Location.organization_id == target.organization_id)
            ).all()
        )
        if found != set(location_ids):
            raise HTTPException(status_code=404, detail="Location not found")
    try:
        service.assign_user_to_locations(user_id, location_ids)
    except ReviewHubError as e:
        raise http_error(e) from e
    return MessageResponse(message="User assigned to locations successfully")


@router.post(
    "/access/user/{user_id}/group/{group_id}",
    response_model=MessageResponse,
    summary="Grant a location group",
)
async def assign_location_group(
    user_id: int,
    group_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> MessageResponse:
    _require_colleague(db, user, user_id)
    try:
        service.assign_user_to_location_group(user_id, group_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return MessageResponse(message="User assigned to location group successfully")


@router.post(
    "/access/user/{user_id}/all",
    response_model=MessageResponse,
    summary="Grant every location",
)
async def assign_all_locations(
    user_id: int,
    organization_id: int = Query(..., alias="organizationId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
) -> MessageResponse:
    _require_organization(user, organization_id)
    _require_colleague(db, user, user_id)
    service.assign_user_to_all_locations(user_id, organization_id)
    return MessageResponse(message="User assigned to all locations successfully")
