# paypals/routers/circle_members.py
# Membership changes: leave, remove a member, promote to admin.

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.circle_member import MemberRole, MemberStatus
from paypals.models.user import User
from paypals.services.audit import log_action, LEAVE, REMOVE_MEMBER, PROMOTE_MEMBER, ENTITY_CIRCLE
from paypals.utils.circles import (
    count_admins,
    get_active_membership,
    require_admin,
    require_membership,
)
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{circle_id}/leave")
def leave_circle(
    circle_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_membership(db, circle_id, current_user.id)
    membership = get_active_membership(db, circle_id, current_user.id)

    if membership.role == MemberRole.admin and count_admins(db, circle_id) <= 1:
        raise HTTPException(
            status_code=400,
            detail="You are the last admin of this circle. Promote another member before leaving.",
        )

    membership.status = MemberStatus.inactive
    log_action(
        db,
        action_type=LEAVE,
        target_entity=ENTITY_CIRCLE,
        target_id=circle_id,
        performed_by=current_user.id,
        description=f"User {current_user.id} left the circle",
    )
    db.commit()
    log.info("user %s left circle %s", current_user.id, circle_id)
    return ok("Left circle successfully", {"circle_id": circle_id})


@router.delete("/{circle_id}/members/{user_id}")
def remove_member(
    circle_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_admin(db, circle_id, current_user.id)
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Use leave to exit a circle yourself")

    target = get_active_membership(db, circle_id, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="Member not found")

    target.status = MemberStatus.inactive
    log_action(
        db,
        action_type=REMOVE_MEMBER,
        target_entity=ENTITY_CIRCLE,
        target_id=circle_id,
        performed_by=current_user.id,
        description=f"Removed user {user_id}",
    )
    db.commit()
    return ok("Member removed successfully", {"circle_id": circle_id, "user_id": user_id})


@router.patch("/{circle_id}/members/{user_id}/promote")
def promote_member(
    circle_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_admin(db, circle_id, current_user.id)

    target = get_active_membership(db, circle_id, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="Member not found")
    if target.role == MemberRole.admin:
        raise HTTPException(status_code=400, detail="Member is already an admin")

    target.role = MemberRole.admin
    log_action(
        db,
        action_type=PROMOTE_MEMBER,
        target_entity=ENTITY_CIRCLE,
        target_id=circle_id,
        performed_by=current_user.id,
        description=f"Promoted user {user_id} to admin",
    )
    db.commit()
    return ok("Member promoted successfully", {"circle_id": circle_id, "user_id": user_id, "role": "admin"})
