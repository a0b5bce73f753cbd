# paypals/routers/external_participants.py
# Token-authenticated access for participants without an account.
# The token comes from the emailed link; no session cookie is involved.

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.transaction_member import PaymentStatus
from paypals.services.transactions import (
    get_external_member,
    mark_external_paid,
    refresh_status,
    serialize_member,
    serialize_transaction,
)
from paypals.utils.responses import ok

log = logging.getLogger(__name__)

router = APIRouter()


class ExternalPaymentIn(BaseModel):
    payment_status: str
    payment_method: Optional[str] = None


@router.get("/{token}")
def get_external_transaction(token: str, db: Session = Depends(get_db)):
    m = get_external_member(db, token)
    return ok("Transaction retrieved successfully", {
        "transaction": serialize_transaction(m.transaction),
        "external_participant": serialize_member(m),
    })


@router.patch("/{token}/payment")
def update_external_payment(token: str, payload: ExternalPaymentIn, db: Session = Depends(get_db)):
    m = get_external_member(db, token)
    try:
        new_status = PaymentStatus(payload.payment_status)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payment status. Must be 'pending' or 'paid'")

    if new_status == PaymentStatus.paid:
        all_paid = mark_external_paid(db, m, payload.payment_method)
    else:
        m.payment_status = PaymentStatus.pending
        m.paid_at = None
        m.payment_method = None
        all_paid = refresh_status(m.transaction)

    db.commit()
    db.refresh(m)
    log.info("external payment status: member=%s status=%s", m.id, m.payment_status.value)
    return ok("Payment status updated successfully", {
        "external_participant": serialize_member(m),
        "allMembersPaid": all_paid,
    })
