# paypals/routers/cleanup.py
# Manual triggers for the invitation cleanup (the same steps the CLI and the
# daily loop run).

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.user import User
from paypals.schemas.cleanup import CleanupIn
from paypals.services.invitation_cleanup import cleanup_expired_invitations, run_cleanup
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/mark-expired")
def mark_expired(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    count = cleanup_expired_invitations(db)
    log.info("mark-expired triggered by user=%s: %s", current_user.id, count)
    return ok(f"Marked {count} invitations as expired", {"markedExpired": count})


@router.post("/expired-invitations")
def expired_invitations(
    payload: Optional[CleanupIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    days_old = payload.daysOld if payload else CleanupIn().daysOld
    summary = run_cleanup(db, days_old)
    log.info("invitation cleanup triggered by user=%s: %s", current_user.id, summary)
    return ok("Invitation cleanup completed", summary)
