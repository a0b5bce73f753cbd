# paypals/routers/transactions.py
# -----------------------------------------------------------------------------
# ROUTER: Transactions (shared expenses) + participant payment status
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette import status
from sqlalchemy import select, func, or_, exists
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.circle_member import CircleMember, MemberStatus
from paypals.models.transaction import Transaction
from paypals.models.transaction_member import TransactionMember, PaymentStatus
from paypals.models.user import User
from paypals.schemas.transaction import (
    TransactionCreate,
    TransactionUpdate,
    PaymentStatusUpdate,
    BulkStatusUpdate,
    ReminderIn,
)
from paypals.services import email as email_service
from paypals.services import maps
from paypals.services.audit import (
    log_action,
    CREATE,
    UPDATE,
    DELETE,
    PAYMENT_STATUS,
    ENTITY_TRANSACTION,
)
from paypals.services.notifications import notify_transaction_created, notify_payment_due
from paypals.services.transactions import (
    DEFAULT_CATEGORY,
    build_members,
    can_edit,
    find_participation,
    refresh_status,
    serialize_member,
    serialize_transaction,
)
from paypals.utils.circles import get_circle_or_404, require_membership
from paypals.utils.clock import utc_now
from paypals.utils.money import q, as_float, ZERO
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "created_at": Transaction.created_at,
    "updated_at": Transaction.updated_at,
    "total_amount": Transaction.total_amount,
    "name": Transaction.name,
    "category": Transaction.category,
}
STATUS_FILTERS = ("fully_paid", "pending", "user_pending", "user_paid")
MAX_LIMIT = 100


# ===== Helpers ================================================================

def _get_tx_or_404(db: Session, transaction_id: int) -> Transaction:
    tx = db.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


def _parse_payment_status(raw: str) -> PaymentStatus:
    try:
        return PaymentStatus(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payment status. Must be 'pending' or 'paid'")


def _apply_location(tx: Transaction, payload: TransactionCreate) -> None:
    loc = maps.resolve_location(
        place_id=payload.place_id,
        lat=payload.location_lat,
        lng=payload.location_lng,
        location_name=payload.location_name,
    )
    for field, value in loc.items():
        setattr(tx, field, value)


def _set_member_status(m: TransactionMember, new_status: PaymentStatus, method: Optional[str] = None) -> None:
    m.payment_status = new_status
    if new_status == PaymentStatus.paid:
        m.paid_at = m.paid_at or utc_now()
        if method:
            m.payment_method = method
    else:
        m.paid_at = None
        m.payment_method = None


def _email_external_participants(tx: Transaction, creator: User) -> None:
    for m in tx.members:
        if m.user_id is None and m.email and m.access_token:
            email_service.send_external_participant_email(
                m.email,
                creator_name=creator.username,
                transaction_name=tx.name,
                amount=m.amount_owed,
                token=m.access_token,
            )


def _user_tx_scope(user_id: int):
    """Transactions in the user's active circles, or created by the user."""
    in_my_circles = exists().where(
        CircleMember.circle_id == Transaction.circle_id,
        CircleMember.user_id == user_id,
        CircleMember.status == MemberStatus.active,
    )
    return or_(in_my_circles, Transaction.created_by == user_id)


# ===== Endpoints: collections ================================================

@router.get("/user")
def get_user_transactions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    txs = db.scalars(
        select(Transaction)
        .where(_user_tx_scope(current_user.id))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    ).all()
    return ok("User transactions retrieved successfully", {
        "transactions": [serialize_transaction(tx, current_user.id, include_circle=True) for tx in txs],
    })


@router.get("/user/summary")
def get_user_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Totals over every transaction the caller participates in."""
    txs = db.scalars(
        select(Transaction)
        .where(exists().where(
            TransactionMember.transaction_id == Transaction.id,
            TransactionMember.user_id == current_user.id,
        ))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    ).all()

    total_owed = pending_amount = paid_amount = ZERO
    pending_count = paid_count = 0
    categories: dict = {}
    for tx in txs:
        mine = find_participation(tx, current_user.id)
        owed = q(mine.amount_owed)
        total_owed += owed
        if mine.payment_status == PaymentStatus.pending:
            pending_amount += owed
            pending_count += 1
        else:
            paid_amount += owed
            paid_count += 1

        cat = categories.setdefault(tx.category or DEFAULT_CATEGORY, {
            "count": 0,
            "total_amount": ZERO,
            "user_amount_owed": ZERO,
        })
        cat["count"] += 1
        cat["total_amount"] += q(tx.total_amount)
        cat["user_amount_owed"] += owed

    summary = {
        "total_transactions": len(txs),
        "total_amount_owed": as_float(total_owed),
        "pending_amount": as_float(pending_amount),
        "paid_amount": as_float(paid_amount),
        "pending_count": pending_count,
        "paid_count": paid_count,
        "categories": {
            name: {
                "count": c["count"],
                "total_amount": as_float(c["total_amount"]),
                "user_amount_owed": as_float(c["user_amount_owed"]),
            }
            for name, c in categories.items()
        },
    }
    return ok("Transaction summary retrieved successfully", {
        "summary": summary,
        "recent_transactions": [serialize_transaction(tx, current_user.id) for tx in txs[:5]],
    })


@router.get("/circle/{circle_id}")
def get_circle_transactions(
    circle_id: int,
    page: int = Query(1),
    limit: int = Query(20),
    sortBy: str = Query("created_at"),
    sortOrder: str = Query("desc"),
    category: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    userOnly: bool = Query(False),
    dateFrom: Optional[datetime] = Query(None),
    dateTo: Optional[datetime] = Query(None),
    minAmount: Optional[Decimal] = Query(None),
    maxAmount: Optional[Decimal] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Paged, filtered list of a circle's transactions with the caller's share
    and payment progress on each item.
    """
    if page < 1:
        raise HTTPException(status_code=400, detail="Page must be greater than 0")
    if limit < 1:
        raise HTTPException(status_code=400, detail="Limit must be greater than 0")
    limit = min(limit, MAX_LIMIT)
    if sortOrder not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail='Sort order must be "asc" or "desc"')
    if sortBy not in SORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if minAmount is not None and minAmount < 0:
        raise HTTPException(status_code=400, detail="Minimum amount must be non-negative")
    if maxAmount is not None and maxAmount < 0:
        raise HTTPException(status_code=400, detail="Maximum amount must be non-negative")
    if minAmount is not None and maxAmount is not None and minAmount > maxAmount:
        raise HTTPException(status_code=400, detail="Minimum amount cannot be greater than maximum amount")
    if status_filter and status_filter not in STATUS_FILTERS:
        raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(STATUS_FILTERS)}")

    require_membership(db, circle_id, current_user.id)

    where = [Transaction.circle_id == circle_id]

    def _has_member(*conds):
        return exists().where(TransactionMember.transaction_id == Transaction.id, *conds)

    if userOnly:
        where.append(_has_member(TransactionMember.user_id == current_user.id))
    if category:
        where.append(Transaction.category == category.strip().lower())
    if dateFrom:
        where.append(Transaction.created_at >= dateFrom)
    if dateTo:
        where.append(Transaction.created_at <= dateTo)
    if minAmount is not None:
        where.append(Transaction.total_amount >= minAmount)
    if maxAmount is not None:
        where.append(Transaction.total_amount <= maxAmount)
    if search:
        pattern = f"%{search.strip().lower()}%"
        where.append(or_(
            func.lower(Transaction.name).like(pattern),
            func.lower(func.coalesce(Transaction.description, "")).like(pattern),
            func.lower(func.coalesce(Transaction.location_name, "")).like(pattern),
        ))

    pending = TransactionMember.payment_status == PaymentStatus.pending
    if status_filter == "fully_paid":
        where.append(~_has_member(pending))
    elif status_filter == "pending":
        where.append(_has_member(pending))
    elif status_filter == "user_pending":
        where.append(_has_member(TransactionMember.user_id == current_user.id, pending))
    elif status_filter == "user_paid":
        where.append(_has_member(
            TransactionMember.user_id == current_user.id,
            TransactionMember.payment_status == PaymentStatus.paid,
        ))

    total = db.scalar(select(func.count()).select_from(Transaction).where(*where)) or 0
    col = SORT_FIELDS[sortBy]
    txs = db.scalars(
        select(Transaction)
        .where(*where)
        .order_by(col.asc() if sortOrder == "asc" else col.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    pages = math.ceil(total / limit) if total else 0
    return ok("Transactions retrieved successfully", {
        "transactions": [serialize_transaction(tx, current_user.id) for tx in txs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "hasNext": page < pages,
            "hasPrev": page > 1,
        },
    })


@router.patch("/bulk/status")
def bulk_update_status(
    payload: BulkStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Applies one payment status to the caller's share in several transactions.
    Transactions the caller is not part of are reported back, not failed.
    """
    new_status = _parse_payment_status(payload.payment_status)
    ids = list(dict.fromkeys(payload.transaction_ids))

    updated, skipped = [], []
    txs = {tx.id: tx for tx in db.scalars(select(Transaction).where(Transaction.id.in_(ids))).all()}
    for tx_id in ids:
        tx = txs.get(tx_id)
        mine = find_participation(tx, current_user.id) if tx else None
        if not mine:
            skipped.append(tx_id)
            continue
        _set_member_status(mine, new_status)
        refresh_status(tx)
        updated.append(tx_id)

    if updated:
        log_action(
            db,
            action_type=PAYMENT_STATUS,
            target_entity=ENTITY_TRANSACTION,
            performed_by=current_user.id,
            description=f"Bulk set {new_status.value} on transactions {updated}",
        )
    db.commit()
    return ok(f"{len(updated)} transactions updated", {"updated_ids": updated, "skipped_ids": skipped})


@router.post("/reminder/{user_id}")
def send_payment_reminder(
    user_id: int,
    payload: Optional[ReminderIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    The creator nudges a participant about their pending shares
    (one transaction, or all of the caller's transactions).
    """
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot remind yourself")
    if not db.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")

    stmt = (
        select(TransactionMember)
        .join(Transaction, Transaction.id == TransactionMember.transaction_id)
        .where(
            Transaction.created_by == current_user.id,
            TransactionMember.user_id == user_id,
            TransactionMember.payment_status == PaymentStatus.pending,
        )
    )
    if payload and payload.transaction_id is not None:
        tx = _get_tx_or_404(db, payload.transaction_id)
        if tx.created_by != current_user.id:
            raise HTTPException(status_code=403, detail="Only the transaction creator can send reminders")
        stmt = stmt.where(Transaction.id == tx.id)

    members = db.scalars(stmt).all()
    if not members:
        raise HTTPException(status_code=404, detail="No pending payments found for this user")

    for m in members:
        notify_payment_due(db, m, m.transaction)
    db.commit()
    log.info("payment reminders sent: from=%s to=%s count=%s", current_user.id, user_id, len(members))
    return ok("Payment reminder sent successfully", {"reminders_sent": len(members)})


# ===== Endpoints: single transaction =========================================

@router.post("/{circle_id}", status_code=status.HTTP_201_CREATED)
def create_transaction(
    circle_id: int,
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_circle_or_404(db, circle_id)
    require_membership(db, circle_id, current_user.id)

    members = build_members(
        db,
        circle_id=circle_id,
        creator=current_user,
        total_amount=payload.total_amount,
        participants=payload.participants,
    )

    tx = Transaction(
        circle_id=circle_id,
        created_by=current_user.id,
        name=payload.name.strip(),
        description=payload.description,
        category=payload.category or DEFAULT_CATEGORY,
        total_amount=q(payload.total_amount),
    )
    _apply_location(tx, payload)
    tx.members = members
    refresh_status(tx)
    db.add(tx)
    db.flush()

    log_action(
        db,
        action_type=CREATE,
        target_entity=ENTITY_TRANSACTION,
        target_id=tx.id,
        performed_by=current_user.id,
        description=f"Created transaction '{tx.name}' for {q(tx.total_amount)}",
    )
    notified = [m.user_id for m in members if m.user_id is not None and m.user_id != current_user.id]
    notify_transaction_created(db, tx.id, notified, current_user.username, tx.name)
    db.commit()
    db.refresh(tx)

    _email_external_participants(tx, current_user)
    log.info("transaction created: id=%s circle=%s by user=%s", tx.id, circle_id, current_user.id)
    return ok("Transaction created successfully", serialize_transaction(tx, current_user.id, editable=True))


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tx = _get_tx_or_404(db, transaction_id)
    require_membership(db, tx.circle_id, current_user.id)
    return ok("Transaction retrieved successfully", serialize_transaction(
        tx,
        current_user.id,
        editable=can_edit(db, tx, current_user.id),
        include_circle=True,
    ))


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Replaces the transaction fields and its split. Payment status is kept for
    participants whose share did not change.
    """
    tx = _get_tx_or_404(db, transaction_id)
    require_membership(db, tx.circle_id, current_user.id)
    if not can_edit(db, tx, current_user.id):
        raise HTTPException(status_code=403, detail="Only transaction creator or circle admin can update")

    creator = tx.creator
    new_members = build_members(
        db,
        circle_id=tx.circle_id,
        creator=creator,
        total_amount=payload.total_amount,
        participants=payload.participants,
        transaction_id=tx.id,
    )

    old_by_key = {(m.user_id, m.email): m for m in tx.members}
    for m in new_members:
        old = old_by_key.get((m.user_id, m.email))
        if old is not None and q(old.amount_owed) == q(m.amount_owed):
            m.payment_status = old.payment_status
            m.payment_method = old.payment_method
            m.paid_at = old.paid_at
            m.access_token = old.access_token or m.access_token
            m.access_token_expires = old.access_token_expires or m.access_token_expires

    tx.members.clear()
    db.flush()

    tx.name = payload.name.strip()
    tx.description = payload.description
    tx.category = payload.category or DEFAULT_CATEGORY
    tx.total_amount = q(payload.total_amount)
    _apply_location(tx, payload)
    tx.members.extend(new_members)
    refresh_status(tx)

    log_action(
        db,
        action_type=UPDATE,
        target_entity=ENTITY_TRANSACTION,
        target_id=tx.id,
        performed_by=current_user.id,
        description=f"Updated transaction '{tx.name}'",
    )
    db.commit()
    db.refresh(tx)
    return ok("Transaction updated successfully", serialize_transaction(tx, current_user.id, editable=True))


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tx = _get_tx_or_404(db, transaction_id)
    if not can_edit(db, tx, current_user.id):
        raise HTTPException(status_code=403, detail="Only transaction creator or circle admin can delete")
    if any(
        m.payment_status == PaymentStatus.paid and m.user_id != tx.created_by and q(m.amount_owed) > 0
        for m in tx.members
    ):
        raise HTTPException(status_code=400, detail="Cannot delete transaction with paid participants")

    log_action(
        db,
        action_type=DELETE,
        target_entity=ENTITY_TRANSACTION,
        target_id=tx.id,
        performed_by=current_user.id,
        description=f"Deleted transaction '{tx.name}'",
    )
    db.delete(tx)
    db.commit()
    log.info("transaction deleted: id=%s by user=%s", transaction_id, current_user.id)
    return ok("Transaction deleted successfully")


@router.patch("/{transaction_id}/status")
def update_payment_status(
    transaction_id: int,
    payload: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    new_status = _parse_payment_status(payload.payment_status)
    tx = _get_tx_or_404(db, transaction_id)
    mine = find_participation(tx, current_user.id)
    if not mine:
        raise HTTPException(status_code=403, detail="Access denied: You are not a participant in this transaction")

    _set_member_status(mine, new_status, payload.payment_method)
    all_paid = refresh_status(tx)
    log_action(
        db,
        action_type=PAYMENT_STATUS,
        target_entity=ENTITY_TRANSACTION,
        target_id=tx.id,
        performed_by=current_user.id,
        description=f"Payment status set to {new_status.value}",
    )
    db.commit()
    db.refresh(mine)
    return ok("Payment status updated successfully", {
        "member": serialize_member(mine),
        "transaction_status": tx.status.value,
        "allMembersPaid": all_paid,
    })
