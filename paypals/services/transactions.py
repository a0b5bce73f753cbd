# paypals/services/transactions.py
# -----------------------------------------------------------------------------
# Transaction business rules shared by the transactions, paynow and dashboard
# routers: split validation, participant rows, response shaping.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException
from starlette import status
from sqlalchemy import select
from sqlalchemy.orm import Session

from paypals.models.transaction import Transaction, TransactionStatus
from paypals.models.transaction_member import TransactionMember, PaymentStatus
from paypals.models.user import User
from paypals.schemas.transaction import ParticipantIn
from paypals.services.audit import (
    log_action,
    AUTO_ADD_CREATOR,
    PAYMENT_STATUS,
    SECURITY_VIOLATION,
    ENTITY_TRANSACTION,
    ENTITY_CIRCLE,
)
from paypals.services.notifications import notify_payment_received
from paypals.utils.circles import get_circle_member_ids, is_circle_admin
from paypals.utils.clock import utc_now
from paypals.utils.money import q, as_float, fmt, ZERO, SUM_TOLERANCE

log = logging.getLogger(__name__)

EXTERNAL_TOKEN_TTL = timedelta(days=30)
DEFAULT_CATEGORY = "other"


# ===== Split =====

def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def build_members(
    db: Session,
    *,
    circle_id: int,
    creator: User,
    total_amount: Decimal,
    participants: List[ParticipantIn],
    transaction_id: Optional[int] = None,
) -> List[TransactionMember]:
    """
    Validates the split and returns unsaved TransactionMember rows.

    Rules:
      • at least one participant;
      • registered participants must be active circle members
        (a violation is audited and committed before the 400);
      • creator not listed -> auto-added with total - sum(participants),
        which must not be negative;
      • creator listed -> sum(participants) must equal total within 0.01.
    """
    if not participants:
        raise _bad_request("At least one participant is required in this transaction")

    total = q(total_amount)

    user_ids = [p.user_id for p in participants if p.user_id is not None]
    if len(user_ids) != len(set(user_ids)):
        raise _bad_request("Duplicate participants are not allowed")

    emails = [p.email.lower() for p in participants if p.user_id is None]
    if len(emails) != len(set(emails)):
        raise _bad_request("Duplicate external participants are not allowed")

    member_ids = set(get_circle_member_ids(db, circle_id))
    outsiders = sorted(uid for uid in user_ids if uid not in member_ids)
    if outsiders:
        log_action(
            db,
            action_type=SECURITY_VIOLATION,
            target_entity=ENTITY_CIRCLE,
            target_id=circle_id,
            performed_by=creator.id,
            description=f"Attempted to add non-members {outsiders} to a transaction",
        )
        db.commit()
        log.warning("non-member participants rejected: circle=%s user=%s ids=%s", circle_id, creator.id, outsiders)
        raise _bad_request(f"Participants with IDs [{', '.join(str(i) for i in outsiders)}] are not members of this circle")

    participants_sum = q(sum((q(p.amount_owed) for p in participants), ZERO))

    rows: List[TransactionMember] = []
    now = utc_now()
    for p in participants:
        amount = q(p.amount_owed)
        if p.user_id is not None:
            rows.append(TransactionMember(
                user_id=p.user_id,
                amount_owed=amount,
                payment_status=PaymentStatus.pending if amount > 0 else PaymentStatus.paid,
                paid_at=None if amount > 0 else now,
            ))
        else:
            rows.append(TransactionMember(
                email=p.email.lower(),
                amount_owed=amount,
                payment_status=PaymentStatus.pending if amount > 0 else PaymentStatus.paid,
                paid_at=None if amount > 0 else now,
                access_token=secrets.token_hex(32),
                access_token_expires=now + EXTERNAL_TOKEN_TTL,
            ))

    if creator.id not in user_ids:
        creator_amount = q(total - participants_sum)
        if creator_amount < 0:
            raise _bad_request(
                f"Total amount ({fmt(total)}) is less than sum of participant amounts ({fmt(participants_sum)})"
            )
        rows.append(TransactionMember(
            user_id=creator.id,
            amount_owed=creator_amount,
            payment_status=PaymentStatus.paid if creator_amount == 0 else PaymentStatus.pending,
            paid_at=now if creator_amount == 0 else None,
        ))
        log_action(
            db,
            action_type=AUTO_ADD_CREATOR,
            target_entity=ENTITY_TRANSACTION,
            target_id=transaction_id,
            performed_by=creator.id,
            description=f"Creator auto-added with share {fmt(creator_amount)}",
        )
    elif (participants_sum - total).copy_abs() > SUM_TOLERANCE:
        raise _bad_request(
            f"Total amount ({fmt(total)}) does not match sum of participant amounts ({fmt(participants_sum)})"
        )

    return rows


def refresh_status(tx: Transaction) -> bool:
    """completed once every participant paid. Returns True when all paid."""
    all_paid = bool(tx.members) and all(m.payment_status == PaymentStatus.paid for m in tx.members)
    tx.status = TransactionStatus.completed if all_paid else TransactionStatus.pending
    return all_paid


def can_edit(db: Session, tx: Transaction, user_id: int) -> bool:
    return tx.created_by == user_id or is_circle_admin(db, tx.circle_id, user_id)


def find_participation(tx: Transaction, user_id: int) -> Optional[TransactionMember]:
    for m in tx.members or []:
        if m.user_id == user_id:
            return m
    return None


# ===== Response shaping =====

def _user_short(u: Optional[User]) -> Optional[Dict[str, Any]]:
    if u is None:
        return None
    return {"id": u.id, "username": u.username, "email": u.email}


def serialize_member(m: TransactionMember) -> Dict[str, Any]:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "email": m.email if m.user_id is None else None,
        "is_external": m.user_id is None,
        "amount_owed": as_float(m.amount_owed),
        "payment_status": m.payment_status.value,
        "payment_method": m.payment_method,
        "paid_at": m.paid_at,
        "user": _user_short(m.user),
    }


def payment_progress(members: Iterable[TransactionMember]) -> Dict[str, int]:
    members = list(members)
    paid = sum(1 for m in members if m.payment_status == PaymentStatus.paid)
    total = len(members)
    return {
        "paid_count": paid,
        "total_count": total,
        "percentage": round(paid * 100 / total) if total else 0,
    }


def serialize_transaction(
    tx: Transaction,
    user_id: Optional[int] = None,
    *,
    editable: Optional[bool] = None,
    include_circle: bool = False,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": tx.id,
        "name": tx.name,
        "description": tx.description,
        "category": tx.category,
        "total_amount": as_float(tx.total_amount),
        "status": tx.status.value,
        "circle_id": tx.circle_id,
        "created_by": tx.created_by,
        "location_name": tx.location_name,
        "location_lat": tx.location_lat,
        "location_lng": tx.location_lng,
        "place_id": tx.place_id,
        "formatted_address": tx.formatted_address,
        "created_at": tx.created_at,
        "updated_at": tx.updated_at,
        "members": [serialize_member(m) for m in tx.members or []],
        "creator": _user_short(tx.creator),
        "payment_progress": payment_progress(tx.members or []),
    }
    if user_id is not None:
        mine = find_participation(tx, user_id)
        out["user_amount_owed"] = as_float(mine.amount_owed) if mine else 0.0
        out["user_payment_status"] = mine.payment_status.value if mine else None
        out["is_user_participant"] = mine is not None
    if editable is not None:
        out["can_edit"] = editable
    if include_circle and tx.circle is not None:
        out["circle"] = {"id": tx.circle.id, "name": tx.circle.name, "type": tx.circle.type.value}
    return out


# ===== External participants =================================================

def get_external_member(db: Session, token: str) -> TransactionMember:
    """401 for unknown or expired tokens."""
    m = db.scalar(select(TransactionMember).where(TransactionMember.access_token == token))
    if not m or m.user_id is not None:
        raise HTTPException(status_code=401, detail="Invalid access token")
    if m.access_token_expires is None or m.access_token_expires < utc_now():
        raise HTTPException(status_code=401, detail="Access token has expired")
    return m


def mark_external_paid(db: Session, m: TransactionMember, method: Optional[str]) -> bool:
    """Marks the share paid, notifies the creator, returns allMembersPaid. Does not commit."""
    tx = m.transaction
    was_paid = m.payment_status == PaymentStatus.paid
    m.payment_status = PaymentStatus.paid
    m.payment_method = method or m.payment_method
    m.paid_at = m.paid_at or utc_now()
    all_paid = refresh_status(tx)
    if not was_paid:
        notify_payment_received(db, tx.created_by, m.email, m.amount_owed, tx.name, tx.id)
        log_action(
            db,
            action_type=PAYMENT_STATUS,
            target_entity=ENTITY_TRANSACTION,
            target_id=tx.id,
            description=f"External participant {m.email} paid via {m.payment_method or 'unspecified'}",
        )
    return all_paid
