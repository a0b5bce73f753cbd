# paypals/routers/dashboard.py
from __future__ import annotations

from decimal import Decimal
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.circle import Circle
from paypals.models.transaction import Transaction
from paypals.models.transaction_member import TransactionMember, PaymentStatus
from paypals.models.user import User
from paypals.utils.money import q, as_float, ZERO
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

router = APIRouter()

# =========================
# Helpers
# =========================

def _owed_to_me_by_circle(db: Session, user_id: int) -> Dict[int, Decimal]:
    """Pending shares of other people on transactions I created."""
    rows = db.execute(
        select(Transaction.circle_id, func.coalesce(func.sum(TransactionMember.amount_owed), 0))
        .join(Transaction, Transaction.id == TransactionMember.transaction_id)
        .where(
            Transaction.created_by == user_id,
            TransactionMember.payment_status == PaymentStatus.pending,
            # externals have user_id NULL; "!=" would drop them in SQL
            func.coalesce(TransactionMember.user_id, 0) != user_id,
        )
        .group_by(Transaction.circle_id)
    ).all()
    return {cid: q(total) for cid, total in rows}


def _i_owe_by_circle(db: Session, user_id: int) -> Dict[int, Decimal]:
    """My pending shares on transactions created by others."""
    rows = db.execute(
        select(Transaction.circle_id, func.coalesce(func.sum(TransactionMember.amount_owed), 0))
        .join(Transaction, Transaction.id == TransactionMember.transaction_id)
        .where(
            TransactionMember.user_id == user_id,
            TransactionMember.payment_status == PaymentStatus.pending,
            Transaction.created_by != user_id,
        )
        .group_by(Transaction.circle_id)
    ).all()
    return {cid: q(total) for cid, total in rows}


# =========================
# /dashboard/balances
# =========================
@router.get("/balances")
def get_balances(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Global balance of the caller over all circles:
      owedTo = what others still owe me
      owes   = what I still owe others
      net    = owedTo - owes
    plus the same three numbers per circle.
    """
    owed_to = _owed_to_me_by_circle(db, current_user.id)
    owes = _i_owe_by_circle(db, current_user.id)

    circle_ids = sorted(set(owed_to) | set(owes))
    names = {}
    if circle_ids:
        names = dict(db.execute(select(Circle.id, Circle.name).where(Circle.id.in_(circle_ids))).all())

    circles = []
    for cid in circle_ids:
        a = owed_to.get(cid, ZERO)
        b = owes.get(cid, ZERO)
        circles.append({
            "circle_id": cid,
            "circle_name": names.get(cid),
            "owedTo": as_float(a),
            "owes": as_float(b),
            "net": as_float(q(a - b)),
        })

    total_owed_to = q(sum(owed_to.values(), ZERO))
    total_owes = q(sum(owes.values(), ZERO))
    return ok("Balances retrieved successfully", {
        "owedTo": as_float(total_owed_to),
        "owes": as_float(total_owes),
        "net": as_float(q(total_owed_to - total_owes)),
        "circles": circles,
    })
