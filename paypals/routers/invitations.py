# paypals/routers/invitations.py
# -----------------------------------------------------------------------------
# ROUTER: Circle invitations
#   send -> pending -> accepted | rejected | expired (or cancelled by inviter)
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette import status
from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.invitation import Invitation, InvitationStatus
from paypals.models.user import User
from paypals.schemas.invitation import InvitationCreate
from paypals.services import email as email_service
from paypals.services.audit import (
    log_action,
    INVITE,
    JOIN,
    REJECT,
    CANCEL_INVITATION,
    EXPIRE_INVITATION,
    ENTITY_INVITATION,
)
from paypals.services.circle_membership import ensure_member, is_active_member
from paypals.services.invitation_cleanup import mark_expired_invitations
from paypals.services.notifications import notify_circle_invitation, notify_member_joined
from paypals.utils.circles import get_circle_or_404, get_circle_member_ids, is_circle_admin, require_admin
from paypals.utils.clock import utc_now
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()

INVITATION_TTL = timedelta(days=7)
SORT_FIELDS = {
    "created_at": Invitation.created_at,
    "status": Invitation.status,
    "expires_at": Invitation.expires_at,
}


# ---------------- helpers ----------------

def _invitation_out(inv: Invitation) -> dict:
    return {
        "id": inv.id,
        "circle_id": inv.circle_id,
        "inviter_id": inv.inviter_id,
        "invitee_id": inv.invitee_id,
        "email": inv.email,
        "status": inv.status.value,
        "expires_at": inv.expires_at,
        "created_at": inv.created_at,
        "updated_at": inv.updated_at,
        "circle": {"id": inv.circle.id, "name": inv.circle.name, "type": inv.circle.type.value} if inv.circle else None,
        "inviter": {"id": inv.inviter.id, "username": inv.inviter.username} if inv.inviter else None,
        "invitee": {"id": inv.invitee.id, "username": inv.invitee.username} if inv.invitee else None,
    }


def _get_invitation_or_404(db: Session, invitation_id: int) -> Invitation:
    inv = db.get(Invitation, invitation_id)
    if not inv:
        raise HTTPException(status_code=404, detail="Invitation not found")
    return inv


def _is_addressed_to(inv: Invitation, user: User) -> bool:
    if inv.invitee_id is not None:
        return inv.invitee_id == user.id
    return bool(inv.email) and inv.email.lower() == (user.email or "").lower()


def _ensure_respondable(db: Session, inv: Invitation, user: User) -> None:
    """Shared accept/reject checks. An overdue invitation is marked expired on the spot."""
    if not _is_addressed_to(inv, user):
        raise HTTPException(status_code=403, detail="This invitation is not for you")
    if inv.status != InvitationStatus.pending:
        raise HTTPException(status_code=400, detail="Invitation is no longer valid")
    if inv.expires_at < utc_now():
        inv.status = InvitationStatus.expired
        log_action(
            db,
            action_type=EXPIRE_INVITATION,
            target_entity=ENTITY_INVITATION,
            target_id=inv.id,
            description=f"Invitation {inv.id} expired before a response",
        )
        db.commit()
        raise HTTPException(status_code=400, detail="Invitation has expired")


# ---------------- endpoints ----------------

@router.get("/my")
def my_invitations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    sortBy: str = Query("created_at"),
    sortOrder: str = Query("desc"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Invitations addressed to the caller (by id or by email).
    Overdue pending ones are flipped to expired before reading.
    """
    limit = min(limit, 100)
    if sortBy not in SORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if sortOrder not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail='Sort order must be "asc" or "desc"')

    mark_expired_invitations(db, invitee_id=current_user.id, invitee_email=current_user.email)

    where = [
        or_(
            Invitation.invitee_id == current_user.id,
            func.lower(Invitation.email) == current_user.email.lower(),
        )
    ]
    if status_filter:
        try:
            where.append(Invitation.status == InvitationStatus(status_filter))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid invitation status")

    total = db.scalar(select(func.count()).select_from(Invitation).where(*where)) or 0
    col = SORT_FIELDS[sortBy]
    rows = db.scalars(
        select(Invitation)
        .where(*where)
        .order_by(col.asc() if sortOrder == "asc" else col.desc(), Invitation.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return ok("Invitations retrieved successfully", {
        "invitations": [_invitation_out(i) for i in rows],
        "total": total,
        "totalPages": math.ceil(total / limit) if total else 0,
        "currentPage": page,
        "pageSize": limit,
    })


@router.get("/circle/{circle_id}")
def circle_invitations(
    circle_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_admin(db, circle_id, current_user.id)
    rows = db.scalars(
        select(Invitation)
        .where(Invitation.circle_id == circle_id, Invitation.status == InvitationStatus.pending)
        .order_by(Invitation.created_at.desc())
    ).all()
    return ok("Circle invitations retrieved successfully", {"invitations": [_invitation_out(i) for i in rows]})


@router.post("/{circle_id}", status_code=status.HTTP_201_CREATED)
def send_invitation(
    circle_id: int,
    payload: InvitationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.inviteeId is None and not payload.email:
        raise HTTPException(status_code=400, detail="Either inviteeId or email is required")

    circle = get_circle_or_404(db, circle_id)
    if not is_circle_admin(db, circle_id, current_user.id):
        raise HTTPException(status_code=403, detail="Only circle admins can send invitations")

    invitee: Optional[User] = None
    email: Optional[str] = payload.email.lower() if payload.email else None
    if payload.inviteeId is not None:
        invitee = db.get(User, payload.inviteeId)
        if not invitee:
            raise HTTPException(status_code=404, detail="Invitee not found")
    elif email:
        # a registered email is treated like an invite by id
        invitee = db.scalar(select(User).where(func.lower(User.email) == email))

    if (invitee and invitee.id == current_user.id) or (email and email == current_user.email.lower()):
        raise HTTPException(status_code=400, detail="You cannot invite yourself")

    if invitee and is_active_member(db, circle_id, invitee.id):
        raise HTTPException(status_code=400, detail="User is already a member of this circle")

    pending_q = select(Invitation.id).where(
        Invitation.circle_id == circle_id,
        Invitation.status == InvitationStatus.pending,
        Invitation.expires_at >= utc_now(),
    )
    if invitee:
        pending_q = pending_q.where(Invitation.invitee_id == invitee.id)
    else:
        pending_q = pending_q.where(func.lower(Invitation.email) == email)
    if db.scalar(pending_q):
        raise HTTPException(status_code=400, detail="An invitation is already pending for this user")

    inv = Invitation(
        circle_id=circle_id,
        inviter_id=current_user.id,
        invitee_id=invitee.id if invitee else None,
        email=None if invitee else email,
        status=InvitationStatus.pending,
        expires_at=utc_now() + INVITATION_TTL,
    )
    db.add(inv)
    db.flush()

    log_action(
        db,
        action_type=INVITE,
        target_entity=ENTITY_INVITATION,
        target_id=inv.id,
        performed_by=current_user.id,
        description=f"Invited {invitee.username if invitee else email} to circle {circle_id}",
    )
    if invitee:
        notify_circle_invitation(db, invitee.id, current_user.username, circle.name, circle.id)
    db.commit()
    db.refresh(inv)

    if not invitee:
        email_service.send_invitation_email(email, current_user.username, circle.name)

    log.info("invitation sent: id=%s circle=%s by user=%s", inv.id, circle_id, current_user.id)
    return ok("Invitation sent successfully", _invitation_out(inv))


@router.post("/{invitation_id}/accept")
def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    inv = _get_invitation_or_404(db, invitation_id)
    _ensure_respondable(db, inv, current_user)

    existing_ids = [uid for uid in get_circle_member_ids(db, inv.circle_id) if uid != current_user.id]
    try:
        ensure_member(db, inv.circle_id, current_user.id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Circle not found")

    inv.status = InvitationStatus.accepted
    if inv.invitee_id is None:
        inv.invitee_id = current_user.id
    log_action(
        db,
        action_type=JOIN,
        target_entity=ENTITY_INVITATION,
        target_id=inv.id,
        performed_by=current_user.id,
        description=f"Joined circle {inv.circle_id}",
    )
    notify_member_joined(db, existing_ids, current_user.username, inv.circle.name, inv.circle_id)
    db.commit()
    db.refresh(inv)
    log.info("invitation accepted: id=%s user=%s", inv.id, current_user.id)
    return ok("Invitation accepted successfully", _invitation_out(inv))


@router.post("/{invitation_id}/reject")
def reject_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    inv = _get_invitation_or_404(db, invitation_id)
    _ensure_respondable(db, inv, current_user)

    inv.status = InvitationStatus.rejected
    log_action(
        db,
        action_type=REJECT,
        target_entity=ENTITY_INVITATION,
        target_id=inv.id,
        performed_by=current_user.id,
        description=f"Rejected invitation to circle {inv.circle_id}",
    )
    db.commit()
    db.refresh(inv)
    return ok("Invitation rejected successfully", _invitation_out(inv))


@router.delete("/{invitation_id}")
def cancel_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    inv = _get_invitation_or_404(db, invitation_id)
    if inv.inviter_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the inviter can cancel this invitation")
    if inv.status != InvitationStatus.pending:
        raise HTTPException(status_code=400, detail="Only pending invitations can be cancelled")

    log_action(
        db,
        action_type=CANCEL_INVITATION,
        target_entity=ENTITY_INVITATION,
        target_id=inv.id,
        performed_by=current_user.id,
        description=f"Cancelled invitation to circle {inv.circle_id}",
    )
    db.delete(inv)
    db.commit()
    return ok("Invitation cancelled successfully")
