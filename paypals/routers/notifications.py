# paypals/routers/notifications.py
# -----------------------------------------------------------------------------
# ROUTER: In-app notifications of the current user + reminder triggers.
# Static paths (/unread-count, /read-all, /payment-reminders, …) are declared
# before /{notification_id}.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette import status
from sqlalchemy import select, func, update
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.notification import Notification, NOTIFICATION_TYPES
from paypals.models.user import User
from paypals.schemas.notification import NotificationCreate, NotificationOut
from paypals.services.notifications import (
    create_notification,
    create_payment_reminders,
    send_daily_reminders,
)
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()


def _out(n: Notification) -> dict:
    return NotificationOut.model_validate(n).model_dump()


@router.get("/")
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    rows = db.scalars(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit)
    ).all()
    return ok("Notifications retrieved successfully", {
        "notifications": [_out(n) for n in rows],
        "count": len(rows),
    })


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    count = db.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
    ) or 0
    return ok("Unread count retrieved successfully", {"count": count})


@router.patch("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    res = db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return ok("All notifications marked as read", {"updated_count": res.rowcount or 0})


@router.post("/", status_code=status.HTTP_201_CREATED)
def create(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.type not in NOTIFICATION_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid notification type. Must be one of: {', '.join(sorted(NOTIFICATION_TYPES))}",
        )
    if not db.get(User, payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    n = create_notification(
        db,
        payload.user_id,
        payload.type,
        payload.title,
        payload.message,
        transaction_id=payload.related_transaction_id,
        circle_id=payload.related_circle_id,
    )
    db.commit()
    db.refresh(n)
    log.info("notification created: id=%s for user=%s by user=%s", n.id, n.user_id, current_user.id)
    return ok("Notification created successfully", _out(n))


@router.post("/payment-reminders")
def payment_reminders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sent = create_payment_reminders(db)
    return ok(f"Sent {sent} payment reminders", {"reminders_sent": sent})


@router.post("/daily-reminders")
def daily_reminders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    summary = send_daily_reminders(db)
    return ok("Daily reminders processed", summary)


# ---------------- by id ----------------

@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    res = db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == current_user.id)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    if not res.rowcount:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    return ok("Notification marked as read")


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    n = db.scalar(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
    )
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.delete(n)
    db.commit()
    return ok("Notification deleted successfully")
