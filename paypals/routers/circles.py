# paypals/routers/circles.py
# -----------------------------------------------------------------------------
# ROUTER: Circles (create / list / details / update / delete)
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette import status
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.circle import Circle, CircleType
from paypals.models.circle_member import CircleMember, MemberRole, MemberStatus
from paypals.models.user import User
from paypals.schemas.circle import CircleCreate, CircleUpdate
from paypals.services.audit import log_action, CREATE, UPDATE, DELETE, ENTITY_CIRCLE
from paypals.utils.circles import require_membership, require_admin, list_active_members
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()


def _parse_type(raw: Optional[str]) -> CircleType:
    try:
        return CircleType((raw or CircleType.friends.value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in CircleType)
        raise HTTPException(status_code=400, detail=f"Invalid circle type. Allowed: {allowed}")


def _member_out(m: CircleMember) -> dict:
    return {
        "user_id": m.user_id,
        "role": m.role.value,
        "status": m.status.value,
        "joined_at": m.joined_at,
        "user": {"id": m.user.id, "username": m.user.username, "email": m.user.email} if m.user else None,
    }


def _circle_out(circle: Circle) -> dict:
    return {
        "id": circle.id,
        "name": circle.name,
        "type": circle.type.value,
        "created_at": circle.created_at,
        "updated_at": circle.updated_at,
    }


# ===== Endpoints =============================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_circle(
    payload: CircleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The creator becomes the first (active) admin."""
    circle = Circle(name=payload.name.strip(), type=_parse_type(payload.type))
    db.add(circle)
    db.flush()

    db.add(CircleMember(
        circle_id=circle.id,
        user_id=current_user.id,
        role=MemberRole.admin,
        status=MemberStatus.active,
    ))
    log_action(
        db,
        action_type=CREATE,
        target_entity=ENTITY_CIRCLE,
        target_id=circle.id,
        performed_by=current_user.id,
        description=f"Created circle '{circle.name}'",
    )
    db.commit()
    db.refresh(circle)
    log.info("circle created: id=%s by user=%s", circle.id, current_user.id)
    return ok("Circle created successfully", _circle_out(circle))


@router.get("/user")
def get_user_circles(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    member_count = (
        select(CircleMember.circle_id, func.count(CircleMember.id).label("cnt"))
        .where(CircleMember.status == MemberStatus.active)
        .group_by(CircleMember.circle_id)
        .subquery()
    )
    rows = db.execute(
        select(Circle, CircleMember.role, member_count.c.cnt)
        .join(CircleMember, CircleMember.circle_id == Circle.id)
        .join(member_count, member_count.c.circle_id == Circle.id)
        .where(
            CircleMember.user_id == current_user.id,
            CircleMember.status == MemberStatus.active,
        )
        .order_by(Circle.created_at.desc(), Circle.id.desc())
    ).all()

    data = [
        {**_circle_out(circle), "memberCount": int(cnt or 0), "userRole": role.value}
        for circle, role, cnt in rows
    ]
    return ok("Circles fetched successfully", data)


@router.get("/{circle_id}")
def get_circle(
    circle_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    circle = require_membership(db, circle_id, current_user.id)
    members = list_active_members(db, circle_id)
    mine = next((m for m in members if m.user_id == current_user.id), None)
    return ok("Circle details fetched successfully", {
        **_circle_out(circle),
        "members": [_member_out(m) for m in members],
        "memberCount": len(members),
        "userRole": mine.role.value if mine else None,
    })


@router.put("/{circle_id}")
def update_circle(
    circle_id: int,
    payload: CircleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    circle = require_admin(db, circle_id, current_user.id)

    changed = []
    if payload.name is not None and payload.name.strip() != circle.name:
        circle.name = payload.name.strip()
        changed.append("name")
    if payload.type is not None:
        new_type = _parse_type(payload.type)
        if new_type != circle.type:
            circle.type = new_type
            changed.append("type")

    if changed:
        log_action(
            db,
            action_type=UPDATE,
            target_entity=ENTITY_CIRCLE,
            target_id=circle.id,
            performed_by=current_user.id,
            description=f"Updated circle fields: {', '.join(changed)}",
        )
    db.commit()
    db.refresh(circle)
    return ok("Circle updated successfully", _circle_out(circle))


@router.delete("/{circle_id}")
def delete_circle(
    circle_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Hard delete; members, transactions and invitations go with it."""
    circle = require_admin(db, circle_id, current_user.id)
    log_action(
        db,
        action_type=DELETE,
        target_entity=ENTITY_CIRCLE,
        target_id=circle.id,
        performed_by=current_user.id,
        description=f"Deleted circle '{circle.name}'",
    )
    db.delete(circle)
    db.commit()
    log.info("circle deleted: id=%s by user=%s", circle_id, current_user.id)
    return ok("Circle deleted successfully")
