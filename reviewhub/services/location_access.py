"""
Location Access Resolver.

Answers "which locations can this user see?" for multi-location
organizations. A user's access is the union of their grants inside their
own organization:

- an all-locations grant: every active location of the organization
- a location grant: that single location
- a group grant: every active location in the group and, transitively, in
  all of its active descendant groups

Nothing is cached; every call reads the current grants from the database.

Usage:
    service = LocationService(db)
    ids = service.get_user_accessible_location_ids(user_id)
    if service.user_has_access_to_location(user_id, location_id):
        ...
"""

from collections import deque
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import BusinessRuleError, NotFoundError
from reviewhub.db.models import Location, LocationGroup, User, UserLocationAccess

logger = structlog.get_logger(__name__)


class LocationService:
    """Location, location group and access-grant operations for one session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def get_user_accessible_location_ids(self, user_id: int) -> set[int]:
        """Resolve the set of location ids the user may access.

        Returns an empty set for unknown users and users without an
        organization.
        """
        user = self.db.get(User, user_id)
        if user is None or user.organization_id is None:
            return set()

        grants = self.db.scalars(
            select(UserLocationAccess)
            .where(UserLocationAccess.user_id == user_id)
            .where(UserLocationAccess.organization_id == user.organization_id)
            .order_by(UserLocationAccess.id)
        ).all()

        accessible: set[int] = set()
        group_ids: list[int] = []
        for grant in grants:
            if grant.has_all_locations_access:
                return self._active_location_ids_for_org(user.organization_id)
            if grant.location_id is not None:
                accessible.add(grant.location_id)
            elif grant.location_group_id is not None:
                group_ids.append(grant.location_group_id)

        if group_ids:
            accessible |= self._expand_groups(group_ids, recursive=True)
        return accessible

    def get_user_accessible_locations(self, user_id: int) -> list[Location]:
        """Active accessible locations ordered by name."""
        ids = self.get_user_accessible_location_ids(user_id)
        if not ids:
            return []
        return list(
            self.db.scalars(
                select(Location)
                .where(Location.id.in_(ids))
                .where(Location.is_active.is_(True))
                .order_by(Location.name)
            ).all()
        )

    def user_has_access_to_location(self, user_id: int, location_id: int) -> bool:
        return location_id in self.get_user_accessible_location_ids(user_id)

    def get_locations_in_group(self, group_id: int, recursive: bool = True) -> list[Location]:
        """Active locations of a group, including descendant groups when recursive."""
        ids = self._expand_groups([group_id], recursive=recursive)
        if not ids:
            return []
        return list(
            self.db.scalars(
                select(Location).where(Location.id.in_(ids)).order_by(Location.name)
            ).all()
        )

    def _active_location_ids_for_org(self, organization_id: int) -> set[int]:
        return set(
            self.db.scalars(
                select(Location.id)
                .where(Location.organization_id == organization_id)
                .where(Location.is_active.is_(True))
            ).all()
        )

    def _expand_groups(self, root_group_ids: list[int], recursive: bool) -> set[int]:
        """Breadth-first walk over groups collecting their active locations.

        The visited set makes the walk terminate even if parent links ever
        form a cycle.
        """
        location_ids: set[int] = set()
        visited: set[int] = set()
        queue: deque[int] = deque(root_group_ids)

        while queue:
            group_id = queue.popleft()
            if group_id in visited:
                continue
            visited.add(group_id)

            location_ids.update(
                self.db.scalars(
                    select(Location.id)
                    .where(Location.location_group_id == group_id)
                    .where(Location.is_active.is_(True))
                ).all()
            )

            if not recursive:
                continue

            child_ids = self.db.scalars(
                select(LocationGroup.id)
                .where(LocationGroup.parent_group_id == group_id)
                .where(LocationGroup.is_active.is_(True))
            ).all()
            queue.extend(child for child in child_ids if child not in visited)

        return location_ids

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_location_group(
        self,
        organization_id: int,
        name: str,
        description: Optional[str] = None,
        group_type: Optional[str] = None,
        parent_group_id: Optional[int] = None,
    ) -> LocationGroup:
        """Create a group; its level is one below its parent (roots are 0)."""
        level = 0
        if parent_group_id is not None:
            parent = self.db.get(LocationGroup, parent_group_id)
            if parent is None:
                raise NotFoundError("Parent location group")
            if parent.organization_id != organization_id:
                raise BusinessRuleError(
                    "Parent group belongs to a different organization",
                    {"parent_group_id": parent_group_id},
                )
            level = parent.level + 1

        group = LocationGroup(
            organization_id=organization_id,
            name=name,
            description=description,
            group_type=group_type,
            parent_group_id=parent_group_id,
            level=level,
            is_active=True,
        )
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)

        logger.info(
            "location_group_created",
            group_id=group.id,
            organization_id=organization_id,
            level=level,
        )
        return group

    def create_location(self, organization_id: int, name: str, **fields: Any) -> Location:
        location = Location(organization_id=organization_id, name=name, is_active=True, **fields)
        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)

        logger.info("location_created", location_id=location.id, organization_id=organization_id)
        return location

    # -------------------------------------------------------------------------
    # Access assignment
    # -------------------------------------------------------------------------

    def _require_org_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User")
        if user.organization_id is None:
            raise BusinessRuleError("User is not assigned to an organization")
        return user

    def assign_user_to_locations(self, user_id: int, location_ids: list[int]) -> None:
        """Replace the user's individual location grants with ``location_ids``."""
        user = self._require_org_user(user_id)

        self.db.execute(
            delete(UserLocationAccess)
            .where(UserLocationAccess.user_id == user_id)
            .where(UserLocationAccess.organization_id == user.organization_id)
            .where(UserLocationAccess.location_id.is_not(None))
        )
        for location_id in dict.fromkeys(location_ids):
            self.db.add(
                UserLocationAccess(
                    user_id=user_id,
                    organization_id=user.organization_id,
                    location_id=location_id,
                    has_all_locations_access=False,
                )
            )
        self.db.commit()

        logger.info("user_assigned_to_locations", user_id=user_id, location_count=len(location_ids))

    def assign_user_to_location_group(self, user_id: int, location_group_id: int) -> None:
        user = self._require_org_user(user_id)

        group = self.db.get(LocationGroup, location_group_id)
        if group is None or group.organization_id != user.organization_id:
            raise NotFoundError("Location group")

        self.db.add(
            UserLocationAccess(
                user_id=user_id,
                organization_id=user.organization_id,
                location_group_id=location_group_id,
                has_all_locations_access=False,
            )
        )
        self.db.commit()

        logger.info("user_assigned_to_location_group", user_id=user_id, group_id=location_group_id)

    def assign_user_to_all_locations(self, user_id: int, organization_id: int) -> None:
        """Replace every grant the user holds in the organization with one all-access grant."""
        self.db.execute(
            delete(UserLocationAccess)
            .where(UserLocationAccess.user_id == user_id)
            .where(UserLocationAccess.organization_id == organization_id)
        )
        self.db.add(
            UserLocationAccess(
                user_id=user_id,
                organization_id=organization_id,
                has_all_locations_access=True,
            )
        )
        self.db.commit()

        logger.info("user_assigned_to_all_locations", user_id=user_id, organization_id=organization_id)
