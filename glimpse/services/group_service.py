"""Group membership boundary for the Glimpse matching service."""

from typing import List, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from glimpse.utils.database import GroupMembershipDB

ACTIVE_MEMBERSHIP = "active"


class MembershipDirectory(Protocol):
    """Answers group membership questions inside the caller's transaction."""

    def is_active_member(self, session: Session, user_id: str, group_id: str) -> bool: ...

    def active_group_ids(self, session: Session, user_id: str) -> List[str]: ...


class SqlMembershipDirectory:
    """Membership lookups against the ``group_members`` table."""

    def is_active_member(self, session: Session, user_id: str, group_id: str) -> bool:
        """
        Check whether a user is an active member of a group.

        Args:
            session (Session): Open session of the calling transaction.
            user_id (str): User ID.
            group_id (str): Group ID.

        Returns:
            bool: True if an ACTIVE membership row exists.
        """
        stmt = (
            select(GroupMembershipDB.id)
            .where(
                GroupMembershipDB.user_id == user_id,
                GroupMembershipDB.group_id == group_id,
                GroupMembershipDB.status == ACTIVE_MEMBERSHIP,
            )
            .limit(1)
        )
        return session.scalar(stmt) is not None

    def active_group_ids(self, session: Session, user_id: str) -> List[str]:
        """Return the IDs of every group the user is an active member of."""
        stmt = select(GroupMembershipDB.group_id).where(
            GroupMembershipDB.user_id == user_id,
            GroupMembershipDB.status == ACTIVE_MEMBERSHIP,
        )
        return list(session.scalars(stmt))
