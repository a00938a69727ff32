"""
Team management for a business: invitations, members and roles.

Invitations are single-use, token-addressed and expire after
INVITATION_TTL. Owners and Admins manage the team; the business owner can
neither be removed nor have their role changed.
"""

import secrets
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from reviewhub.db.base import utcnow
from reviewhub.db.enums import InvitationStatus, TeamRole
from reviewhub.db.models import Business, BusinessUser, TeamInvitation, User
from reviewhub.services.email import EmailService, get_email_service

logger = structlog.get_logger(__name__)

INVITATION_TTL = timedelta(days=7)

MANAGER_ROLES = {TeamRole.OWNER.value, TeamRole.ADMIN.value}


class TeamService:
    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def can_manage(self, business_id: int, user_id: int) -> bool:
        """Owners of the business and active Admin/Owner members may manage the team."""
        business = self.db.get(Business, business_id)
        if business is None:
            return False
        if business.user_id == user_id:
            return True

        member = self._active_member(business_id, user_id)
        return member is not None and member.role in MANAGER_ROLES

    def _active_member(self, business_id: int, user_id: int) -> Optional[BusinessUser]:
        return self.db.scalar(
            select(BusinessUser)
            .where(BusinessUser.business_id == business_id)
            .where(BusinessUser.user_id == user_id)
            .where(BusinessUser.is_active.is_(True))
        )

    def _require_manager(self, business_id: int, user_id: int) -> None:
        if not self.can_manage(business_id, user_id):
            raise PermissionDeniedError("You don't have permission to manage this team")

    # -------------------------------------------------------------------------
    # Invitations
    # -------------------------------------------------------------------------

    async def invite(
        self,
        business_id: int,
        inviter_user_id: int,
        email: str,
        role: str,
    ) -> TeamInvitation:
        """Create a pending invitation and email its accept link."""
        self._require_manager(business_id, inviter_user_id)

        business = self.db.get(Business, business_id)
        if business is None:
            raise NotFoundError("Business")
        normalized_email = email.strip().lower()

        existing_user = self.db.scalar(
            select(User).where(func.lower(User.email) == normalized_email)
        )
        if existing_user is not None and (
            existing_user.id == business.user_id
            or self._active_member(business_id, existing_user.id) is not None
        ):
            raise BusinessRuleError("User is already a member of this team")

        pending = self.db.scalar(
            select(TeamInvitation)
            .where(TeamInvitation.business_id == business_id)
            .where(TeamInvitation.email == normalized_email)
            .where(TeamInvitation.status == InvitationStatus.PENDING)
        )
        if pending is not None:
            raise BusinessRuleError("An invitation has already been sent to this email")

        invitation = TeamInvitation(
            business_id=business_id,
            invited_by_user_id=inviter_user_id,
            email=normalized_email,
            role=role,
            token=secrets.token_urlsafe(32),
            status=InvitationStatus.PENDING,
            expires_at=utcnow() + INVITATION_TTL,
        )
        self.db.add(invitation)
        self.db.commit()
        self.db.refresh(invitation)

        inviter = self.db.get(User, inviter_user_id)
        sent = await self.email_service.send_team_invitation(
            to_email=normalized_email,
            inviter_name=inviter.full_name if inviter else "A teammate",
            business_name=business.name,
            invitation_token=invitation.token,
        )
        if sent:
            logger.info("team_invitation_sent", invitation_id=invitation.id, business_id=business_id)
        else:
            logger.warning("team_invitation_email_failed", invitation_id=invitation.id, email=normalized_email)

        return invitation

    def accept(self, token: str, user_id: int) -> TeamInvitation:
        invitation = self.db.scalar(
            select(TeamInvitation)
            .where(TeamInvitation.token == token)
            .where(TeamInvitation.status == InvitationStatus.PENDING)
        )
        if invitation is None:
            raise BusinessRuleError("Invalid or expired invitation")

        if invitation.expires_at < utcnow():
            invitation.status = InvitationStatus.EXPIRED
            self.db.commit()
            raise BusinessRuleError("Invitation has expired")

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User")
        if user.email.lower() != invitation.email.lower():
            raise BusinessRuleError("This invitation was sent to a different email address")

        if self._active_member(invitation.business_id, user_id) is not None:
            raise BusinessRuleError("You are already a member of this team")

        self.db.add(
            BusinessUser(
                business_id=invitation.business_id,
                user_id=user_id,
                role=invitation.role,
                joined_at=utcnow(),
                is_active=True,
            )
        )
        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_at = utcnow()
        invitation.accepted_by_user_id = user_id
        self.db.commit()
        self.db.refresh(invitation)

        logger.info("team_invitation_accepted", invitation_id=invitation.id, user_id=user_id)
        return invitation

    def revoke(self, invitation_id: int, user_id: int) -> bool:
        """Revoke a pending invitation. Returns False when it does not exist."""
        invitation = self.db.get(TeamInvitation, invitation_id)
        if invitation is None:
            return False
        self._require_manager(invitation.business_id, user_id)

        invitation.status = InvitationStatus.REVOKED
        self.db.commit()

        logger.info("team_invitation_revoked", invitation_id=invitation_id, user_id=user_id)
        return True

    def get_pending(self, business_id: int) -> list[TeamInvitation]:
        return list(
            self.db.scalars(
                select(TeamInvitation)
                .where(TeamInvitation.business_id == business_id)
                .where(TeamInvitation.status == InvitationStatus.PENDING)
                .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
            ).all()
        )

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def get_members(self, business_id: int) -> list[BusinessUser]:
        return list(
            self.db.scalars(
                select(BusinessUser)
                .where(BusinessUser.business_id == business_id)
                .where(BusinessUser.is_active.is_(True))
                .order_by(BusinessUser.joined_at, BusinessUser.id)
            ).all()
        )

    def remove_member(self, business_id: int, member_user_id: int, acting_user_id: int) -> bool:
        """Soft-delete a membership. Returns False when there is none."""
        self._require_manager(business_id, acting_user_id)

        business = self.db.get(Business, business_id)
        if business is not None and business.user_id == member_user_id:
            raise BusinessRuleError("Cannot remove the business owner")

        member = self._active_member(business_id, member_user_id)
        if member is None:
            return False

        member.is_active = False
        self.db.commit()

        logger.info("team_member_removed", business_id=business_id, user_id=member_user_id)
        return True

    def update_role(
        self,
        business_id: int,
        member_user_id: int,
        new_role: str,
        acting_user_id: int,
    ) -> bool:
        self._require_manager(business_id, acting_user_id)

        business = self.db.get(Business, business_id)
        if business is not None and business.user_id == member_user_id:
            raise BusinessRuleError("Cannot change the role of the business owner")

        member = self._active_member(business_id, member_user_id)
        if member is None:
            return False

        member.role = new_role
        self.db.commit()

        logger.info("team_member_role_updated", business_id=business_id, user_id=member_user_id, role=new_role)
        return True
