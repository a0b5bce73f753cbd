# paypals/services/notifications.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.orm import Session

from paypals.models.notification import (
    Notification,
    PAYMENT_DUE,
    PAYMENT_RECEIVED,
    CIRCLE_INVITATION,
    MEMBER_JOINED,
    TRANSACTION_CREATED,
    GENERAL,
)
from paypals.models.transaction import Transaction
from paypals.models.transaction_member import TransactionMember, PaymentStatus
from paypals.services import email as email_service
from paypals.utils.clock import utc_now
from paypals.utils.money import fmt

log = logging.getLogger(__name__)

REMINDER_AGE = timedelta(hours=24)


# ===== Core writers (no commit) =====

def create_notification(
    db: Session,
    user_id: int,
    type: str,
    title: str,
    message: str,
    *,
    transaction_id: Optional[int] = None,
    circle_id: Optional[int] = None,
) -> Notification:
    n = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_transaction_id=transaction_id,
        related_circle_id=circle_id,
    )
    db.add(n)
    return n


def create_bulk(db: Session, rows: Iterable[dict]) -> int:
    items = [Notification(**row) for row in rows]
    db.add_all(items)
    return len(items)


# ===== Event helpers =====

def send_welcome(db: Session, user_id: int, username: str) -> Notification:
    return create_notification(
        db,
        user_id,
        GENERAL,
        "Welcome to PayPals!",
        f"Hi {username}! Welcome to PayPals. Start by creating your first circle "
        f"or joining one to manage group expenses together.",
    )


def notify_transaction_created(
    db: Session,
    transaction_id: int,
    member_ids: Iterable[int],
    creator_name: str,
    transaction_name: str,
) -> int:
    return create_bulk(db, (
        {
            "user_id": uid,
            "type": TRANSACTION_CREATED,
            "title": "New Transaction Created",
            "message": f'{creator_name} created a new transaction: "{transaction_name}"',
            "related_transaction_id": transaction_id,
        }
        for uid in member_ids
    ))


def notify_payment_received(
    db: Session,
    creator_id: int,
    payer_name: str,
    amount,
    transaction_name: str,
    transaction_id: int,
) -> Notification:
    return create_notification(
        db,
        creator_id,
        PAYMENT_RECEIVED,
        "Payment Received",
        f'{payer_name} paid ${fmt(amount)} for "{transaction_name}"',
        transaction_id=transaction_id,
    )


def notify_circle_invitation(db: Session, user_id: int, inviter_name: str, circle_name: str, circle_id: int) -> Notification:
    return create_notification(
        db,
        user_id,
        CIRCLE_INVITATION,
        "Circle Invitation",
        f'{inviter_name} invited you to join "{circle_name}"',
        circle_id=circle_id,
    )


def notify_member_joined(
    db: Session,
    member_ids: Iterable[int],
    new_member_name: str,
    circle_name: str,
    circle_id: int,
) -> int:
    return create_bulk(db, (
        {
            "user_id": uid,
            "type": MEMBER_JOINED,
            "title": "New Member Joined",
            "message": f'{new_member_name} joined "{circle_name}"',
            "related_circle_id": circle_id,
        }
        for uid in member_ids
    ))


def notify_payment_due(db: Session, member: TransactionMember, tx: Transaction) -> Notification:
    return create_notification(
        db,
        member.user_id,
        PAYMENT_DUE,
        "Payment Reminder",
        f'Don\'t forget to pay ${fmt(member.amount_owed)} for "{tx.name}"',
        transaction_id=tx.id,
        circle_id=tx.circle_id,
    )


# ===== Reminders =====

def _overdue_participations(db: Session) -> List[TransactionMember]:
    """
    Pending registered participants of transactions older than 24h.
    The creator's own share is never a debt to remind about.
    """
    cutoff = utc_now() - REMINDER_AGE
    stmt = (
        select(TransactionMember)
        .join(Transaction, Transaction.id == TransactionMember.transaction_id)
        .where(
            TransactionMember.payment_status == PaymentStatus.pending,
            TransactionMember.user_id.is_not(None),
            TransactionMember.user_id != Transaction.created_by,
            Transaction.created_at < cutoff,
        )
        .order_by(TransactionMember.id.asc())
    )
    return list(db.scalars(stmt).all())


def create_payment_reminders(db: Session) -> int:
    """
    In-app payment_due reminders, at most one per (user, transaction) per 24h.
    Commits and returns the number created.
    """
    cutoff = utc_now() - REMINDER_AGE
    members = _overdue_participations(db)
    if not members:
        return 0

    recent = set(
        db.execute(
            select(Notification.user_id, Notification.related_transaction_id).where(
                and_(
                    Notification.type == PAYMENT_DUE,
                    Notification.created_at >= cutoff,
                    Notification.related_transaction_id.is_not(None),
                )
            )
        ).all()
    )

    created = 0
    for m in members:
        if (m.user_id, m.transaction_id) in recent:
            continue
        notify_payment_due(db, m, m.transaction)
        recent.add((m.user_id, m.transaction_id))
        created += 1

    db.commit()
    log.info("payment reminders created: %s", created)
    return created


def send_email_payment_reminders(db: Session) -> int:
    sent = 0
    for m in _overdue_participations(db):
        user = m.user
        if not user or not user.email:
            continue
        tx = m.transaction
        ok = email_service.send_payment_reminder_email(
            user.email,
            recipient_name=user.username,
            transaction_name=tx.name,
            amount=m.amount_owed,
            creator_name=tx.creator.username if tx.creator else None,
            circle_name=tx.circle.name if tx.circle else None,
            transaction_id=tx.id,
        )
        if ok:
            sent += 1
    log.info("payment reminder emails sent: %s", sent)
    return sent


def send_daily_reminders(db: Session) -> dict:
    notifications_sent = create_payment_reminders(db)
    emails_sent = send_email_payment_reminders(db)
    summary = {"notificationsSent": notifications_sent, "emailsSent": emails_sent}
    log.info("daily reminders summary: %s", summary)
    return summary
