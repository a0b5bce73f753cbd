# paypals/services/invitation_cleanup.py
# Two sequential bulk steps over invitations:
#   1) pending + past expires_at  -> status 'expired' (one audit row each)
#   2) expired + expires_at older than the retention window -> deleted
# Each step commits on its own.

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.orm import Session

from paypals.models.invitation import Invitation, InvitationStatus
from paypals.services.audit import log_action, EXPIRE_INVITATION, ENTITY_INVITATION
from paypals.utils.clock import utc_now

log = logging.getLogger(__name__)

DEFAULT_DAYS_OLD = 30


def mark_expired_invitations(
    db: Session,
    *,
    invitee_id: Optional[int] = None,
    invitee_email: Optional[str] = None,
    performed_by: Optional[int] = None,
) -> int:
    """
    Marks pending invitations past their expiry as expired and commits.
    invitee_id / invitee_email narrow the sweep to one user's invitations,
    addressed either way (used by GET /my).
    """
    now = utc_now()
    stmt = select(Invitation).where(
        Invitation.status == InvitationStatus.pending,
        Invitation.expires_at < now,
    )
    addressed = []
    if invitee_id is not None:
        addressed.append(Invitation.invitee_id == invitee_id)
    if invitee_email:
        addressed.append(func.lower(Invitation.email) == invitee_email.lower())
    if addressed:
        stmt = stmt.where(or_(*addressed))

    rows = list(db.scalars(stmt).all())
    for inv in rows:
        inv.status = InvitationStatus.expired
        log_action(
            db,
            action_type=EXPIRE_INVITATION,
            target_entity=ENTITY_INVITATION,
            target_id=inv.id,
            performed_by=performed_by,
            description=f"Invitation {inv.id} to circle {inv.circle_id} expired",
        )
    db.commit()
    if rows:
        log.info("invitations marked expired: %s", len(rows))
    return len(rows)


def cleanup_expired_invitations(db: Session) -> int:
    """System sweep: every pending invitation past expiry, performed_by NULL."""
    return mark_expired_invitations(db)


def remove_old_expired_invitations(db: Session, days_old: int = DEFAULT_DAYS_OLD) -> int:
    if days_old < 0:
        raise ValueError("days_old must be non-negative")
    cutoff = utc_now() - timedelta(days=days_old)
    res = db.execute(
        delete(Invitation)
        .where(
            Invitation.status == InvitationStatus.expired,
            Invitation.expires_at < cutoff,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    removed = res.rowcount or 0
    log.info("old expired invitations removed (older than %s days): %s", days_old, removed)
    return removed


def run_cleanup(db: Session, days_old: int = DEFAULT_DAYS_OLD) -> dict:
    marked = cleanup_expired_invitations(db)
    removed = remove_old_expired_invitations(db, days_old)
    return {"markedExpired": marked, "removed": removed, "daysOld": days_old}
