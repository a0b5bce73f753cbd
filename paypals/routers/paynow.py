# paypals/routers/paynow.py
# -----------------------------------------------------------------------------
# ROUTER: PayNow QR payments
#   GET  /{tx}/qr       -> EMV payload + PNG data URL for the caller's share
#   POST /{tx}/confirm  -> caller says "paid" after scanning
#   GET/PATCH /settings -> caller's PayNow phone / enabled flag
#   /external/{token}/… -> same for participants without an account
# Responses use {"success": true, "data": {...}}.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.transaction import Transaction
from paypals.models.transaction_member import TransactionMember, PaymentStatus
from paypals.models.user import User

from paypals.schemas.paynow import PayNowSettingsUpdate, ExternalConfirmIn
from paypals.services.audit import log_action, PAYMENT_STATUS, ENTITY_TRANSACTION
from paypals.services.notifications import notify_payment_received
from paypals.services.transactions import (
    find_participation,
    get_external_member,
    mark_external_paid,
    refresh_status,
)
from paypals.utils import paynow_qr
from paypals.utils.clock import utc_now
from paypals.utils.money import as_float
from paypals.utils.security import get_current_user
from paypals.utils.validators import normalize_sg_phone

log = logging.getLogger(__name__)

router = APIRouter()

PAYMENT_METHOD = "paynow"


# ===== Helpers ================================================================

def _qr_response(tx: Transaction, member: TransactionMember) -> dict:
    if member.payment_status == PaymentStatus.paid:
        raise HTTPException(status_code=400, detail="You have already paid for this transaction")

    creator: User = tx.creator
    if not creator or not creator.paynow_enabled or not creator.paynow_phone:
        raise HTTPException(status_code=400, detail="The transaction creator has not enabled PayNow")
    if not paynow_qr.validate_recipient(creator.paynow_phone):
        raise HTTPException(status_code=400, detail="The transaction creator's PayNow phone number is invalid")

    reference = f"PayPals-{tx.id}"
    qr_data = paynow_qr.build_payload(
        creator.paynow_phone,
        member.amount_owed,
        creator.username,
        reference,
    )
    return {
        "success": True,
        "data": {
            "qrCodeDataURL": paynow_qr.render_data_url(qr_data),
            "qrData": qr_data,
            "paymentInfo": {
                "recipient": creator.username,
                "recipientId": creator.paynow_phone,
                "amount": as_float(member.amount_owed),
                "currency": "SGD",
                "reference": reference,
                "description": f"Payment for {tx.name}",
            },
        },
    }


def _settings_out(user: User) -> dict:
    return {"payNowPhone": user.paynow_phone, "enabled": bool(user.paynow_enabled)}


# ===== Settings (declared before /{transaction_id}/…) ========================

@router.get("/settings")
def get_settings(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": _settings_out(current_user)}


@router.patch("/settings")
def update_settings(
    payload: PayNowSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fields = payload.model_dump(exclude_unset=True)
    if "payNowPhone" in fields:
        try:
            current_user.paynow_phone = normalize_sg_phone(fields["payNowPhone"])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not current_user.paynow_phone:
            current_user.paynow_enabled = False

    if fields.get("enabled") is not None:
        if fields["enabled"] and not current_user.paynow_phone:
            raise HTTPException(status_code=400, detail="PayNow phone number is required to enable PayNow")
        current_user.paynow_enabled = fields["enabled"]

    db.commit()
    db.refresh(current_user)
    return {"success": True, "message": "PayNow settings updated", "data": _settings_out(current_user)}


# ===== External participants =================================================

@router.get("/external/{token}/qr")
def external_qr(token: str, db: Session = Depends(get_db)):
    m = get_external_member(db, token)
    return _qr_response(m.transaction, m)


@router.post("/external/{token}/confirm")
def external_confirm(token: str, payload: Optional[ExternalConfirmIn] = None, db: Session = Depends(get_db)):
    m = get_external_member(db, token)
    if m.payment_status == PaymentStatus.paid:
        raise HTTPException(status_code=400, detail="Payment has already been confirmed")
    method = (payload.payment_method if payload else None) or PAYMENT_METHOD
    all_paid = mark_external_paid(db, m, method)
    db.commit()
    return {
        "success": True,
        "message": "Payment confirmed",
        "data": {"allMembersPaid": all_paid, "transactionStatus": m.transaction.status.value},
    }


# ===== Members ================================================================

@router.get("/{transaction_id}/qr")
def generate_qr(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tx = db.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    mine = find_participation(tx, current_user.id)
    if not mine:
        raise HTTPException(status_code=403, detail="You are not part of this transaction")
    if tx.created_by == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot pay yourself")

    log.info("paynow qr generated: tx=%s user=%s", tx.id, current_user.id)
    return _qr_response(tx, mine)


@router.post("/{transaction_id}/confirm")
def confirm_payment(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tx = db.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    mine = find_participation(tx, current_user.id)
    if not mine:
        raise HTTPException(status_code=403, detail="You are not part of this transaction")
    if mine.payment_status == PaymentStatus.paid:
        raise HTTPException(status_code=400, detail="Payment has already been confirmed")

    mine.payment_status = PaymentStatus.paid
    mine.payment_method = PAYMENT_METHOD
    mine.paid_at = utc_now()
    all_paid = refresh_status(tx)

    if tx.created_by != current_user.id:
        notify_payment_received(db, tx.created_by, current_user.username, mine.amount_owed, tx.name, tx.id)
    log_action(
        db,
        action_type=PAYMENT_STATUS,
        target_entity=ENTITY_TRANSACTION,
        target_id=tx.id,
        performed_by=current_user.id,
        description="Paid via PayNow",
    )
    db.commit()
    log.info("paynow payment confirmed: tx=%s user=%s all_paid=%s", tx.id, current_user.id, all_paid)
    return {
        "success": True,
        "message": "Payment confirmed",
        "data": {"allMembersPaid": all_paid, "transactionStatus": tx.status.value},
    }
