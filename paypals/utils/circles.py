# paypals/utils/circles.py
# SHARED CIRCLE HELPERS: loaders and access guards.

from __future__ import annotations

from typing import List, Optional

from fastapi import HTTPException
from starlette import status
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from paypals.models.circle import Circle
from paypals.models.circle_member import CircleMember, MemberRole, MemberStatus

# =========================
# LOADERS / GUARDS
# =========================

def get_circle_or_404(db: Session, circle_id: int) -> Circle:
    circle = db.get(Circle, circle_id)
    if not circle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Circle not found")
    return circle


def get_active_membership(db: Session, circle_id: int, user_id: int) -> Optional[CircleMember]:
    return db.scalar(
        select(CircleMember).where(
            CircleMember.circle_id == circle_id,
            CircleMember.user_id == user_id,
            CircleMember.status == MemberStatus.active,
        )
    )


def require_membership(db: Session, circle_id: int, user_id: int) -> Circle:
    """
    Circle must exist and the user must be an active member.
    """
    circle = get_circle_or_404(db, circle_id)
    if not get_active_membership(db, circle_id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied: Not a member")
    return circle


def is_circle_admin(db: Session, circle_id: int, user_id: int) -> bool:
    m = get_active_membership(db, circle_id, user_id)
    return bool(m and m.role == MemberRole.admin)


def require_admin(db: Session, circle_id: int, user_id: int) -> Circle:
    circle = require_membership(db, circle_id, user_id)
    if not is_circle_admin(db, circle_id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only circle admins can perform this action")
    return circle


# =========================
# MEMBERS
# =========================

def get_circle_member_ids(db: Session, circle_id: int) -> List[int]:
    """Active members only."""
    rows = db.execute(
        select(CircleMember.user_id).where(
            CircleMember.circle_id == circle_id,
            CircleMember.status == MemberStatus.active,
        )
    ).all()
    return [uid for (uid,) in rows]


def count_admins(db: Session, circle_id: int) -> int:
    return db.scalar(
        select(func.count())
        .select_from(CircleMember)
        .where(
            CircleMember.circle_id == circle_id,
            CircleMember.role == MemberRole.admin,
            CircleMember.status == MemberStatus.active,
        )
    ) or 0


def list_active_members(db: Session, circle_id: int) -> List[CircleMember]:
    return list(
        db.scalars(
            select(CircleMember)
            .where(
                CircleMember.circle_id == circle_id,
                CircleMember.status == MemberStatus.active,
            )
            .order_by(CircleMember.joined_at.asc(), CircleMember.id.asc())
        ).all()
    )
