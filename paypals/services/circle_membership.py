# paypals/services/circle_membership.py
from __future__ import annotations
from typing import Optional

from sqlalchemy.orm import Session

from paypals.models.circle import Circle
from paypals.models.circle_member import CircleMember, MemberRole, MemberStatus
from paypals.utils.clock import utc_now


def is_active_member(db: Session, circle_id: int, user_id: int) -> bool:
    """
    Active member = circle_members row with status 'active'.
    """
    return (
        db.query(CircleMember)
        .filter(
            CircleMember.circle_id == circle_id,
            CircleMember.user_id == user_id,
            CircleMember.status == MemberStatus.active,
        )
        .first()
        is not None
    )


def ensure_member(
    db: Session,
    circle_id: int,
    user_id: int,
    *,
    role: MemberRole = MemberRole.member,
) -> bool:
    """
    Idempotently adds (or reactivates) a member. Does not commit.

    Returns:
      True  - a new row was created;
      False - the row already existed (active, or reactivated from inactive).

    Raises:
      ValueError("circle_not_found") - the circle does not exist.
    """
    circle: Optional[Circle] = db.get(Circle, circle_id)
    if not circle:
        raise ValueError("circle_not_found")

    row: Optional[CircleMember] = (
        db.query(CircleMember)
        .filter(CircleMember.circle_id == circle_id, CircleMember.user_id == user_id)
        .first()
    )

    if row and row.status == MemberStatus.active:
        return False

    if row:
        row.status = MemberStatus.active
        row.role = role
        row.joined_at = utc_now()
        db.add(row)
        db.flush()
        return False

    db.add(CircleMember(circle_id=circle_id, user_id=user_id, role=role, status=MemberStatus.active))
    db.flush()
    return True
