"""Team endpoints: members and email invitations of a business.

Owners and Admin members manage the team; any active member may list it.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_team_service
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    ErrorResponse,
    InvitationResponse,
    InviteRequest,
    MessageResponse,
    TeamMemberResponse,
    UpdateRoleRequest,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.enums import TeamRole
from reviewhub.db.models import Business, User
from reviewhub.db.session import get_db
from reviewhub.services.team import TeamService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/team", tags=["Team"])


def _require_team_access(db: Session, business_id: int, user: User, service: TeamService) -> Business:
    business = db.get(Business, business_id)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")
    if business.user_id != user.id and not any(m.user_id == user.id for m in service.get_members(business_id)):
        raise HTTPException(status_code=403, detail="You don't have access to this team")
    return business


@router.get("/{business_id}/members", response_model=list[TeamMemberResponse], summary="Team members")
async def list_members(
    business_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: TeamService = Depends(get_team_service),
) -> list[TeamMemberResponse]:
    """The owner first, then members in joining order."""
    business = _require_team_access(db, business_id, user, service)
    owner = business.owner
    members = [
        TeamMemberResponse(
            user_id=owner.id,
            email=owner.email,
            full_name=owner.full_name,
            role=TeamRole.OWNER.value,
            joined_at=business.created_at,
        )
    ]
    members.extend(
        TeamMemberResponse(
            user_id=m.user_id,
            email=m.user.email,
            full_name=m.user.full_name,
            role=m.role,
            joined_at=m.joined_at,
        )
        for m in service.get_members(business_id)
        if m.user_id != owner.id
    )
    return members


@router.get(
    "/{business_id}/invitations",
    response_model=list[InvitationResponse],
    summary="Pending invitations",
)
async def list_invitations(
    business_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: TeamService = Depends(get_team_service),
) -> list[InvitationResponse]:
    _require_team_access(db, business_id, user, service)
    return [InvitationResponse.model_validate(i) for i in service.get_pending(business_id)]


@router.post(
    "/{business_id}/invite",
    response_model=InvitationResponse,
    status_code=201,
    summary="Invite by email",
    responses={
        400: {"model": ErrorResponse, "description": "Already a member or already invited"},
        403: {"model": ErrorResponse, "description": "Caller cannot manage the team"},
    },
)
async def invite(
    business_id: int,
    request: InviteRequest,
    user: User = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> InvitationResponse:
    try:
        invitation = await service.invite(business_id, user.id, str(request.email), request.role)
    except ReviewHubError as e:
        raise http_error(e) from e
    return InvitationResponse.model_validate(invitation)


@router.post("/accept/{token}", response_model=MessageResponse, summary="Accept an invitation")
async def accept_invitation(
    token: str,
    user: User = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> MessageResponse:
    try:
        service.accept(token, user.id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return MessageResponse(message="Invitation accepted successfully")


@router.delete(
    "/invitations/{invitation_id}",
    response_model=MessageResponse,
    summary="Revoke an invitation",
)
async def revoke_invitation(
    invitation_id: int,
    user: User = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> MessageResponse:
    try:
        revoked = service.revoke(invitation_id, user.id)
    except ReviewHubError as e:
        raise http_error(e) from e
    if not revoked:
        raise HTTPException(status_code=404, detail="Invitation not found")
    return MessageResponse(message="Invitation revoked successfully")


@router.delete(
    "/{business_id}/members/{member_user_id}",
    response_model=MessageResponse,
    summary="Remove a member",
)
async def remove_member(
    business_id: int,
    member_user_id: int,
    user: User = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> MessageResponse:
    try:
        removed = service.remove_member(business_id, member_user_id, user.id)
    except ReviewHubError as e:
        raise http_error(e) from e
    if not removed:
        raise HTTPException(status_code=404, detail="Team member not found")
    return MessageResponse(message="Team member removed successfully")


@router.put(
    "/{business_id}/members/{member_user_id}/role",
    response_model=MessageResponse,
    summary="Change a member's role",
)
async def update_member_role(
    business_id: int,
    member_user_id: int,
    request: UpdateRoleRequest,
    user: User = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> MessageResponse:
    try:
        updated = service.update_role(business_id, member_user_id, request.role, user.id)
    except ReviewHubError as e:
        raise http_error(e) from e
    if not updated:
        raise HTTPException(status_code=404, detail="Team member not found")
    return MessageResponse(message="Role updated successfully")
