# paypals/routers/users.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, or_, func
from sqlalchemy.orm import Session

from paypals.db import get_db
from paypals.models.user import User
from paypals.schemas.user import PaymentMethodsUpdate, UserShort
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user
from paypals.utils.validators import normalize_sg_phone, normalize_nric

router = APIRouter()

SEARCH_LIMIT = 10


def _payment_methods(user: User) -> dict:
    return {
        "paynow_phone": user.paynow_phone,
        "paynow_enabled": bool(user.paynow_enabled),
        "has_nric": bool(user.paynow_nric),
    }


@router.get("/search")
def search_users(
    q: str = Query("", description="Username or email fragment, at least 2 characters"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    User lookup for the invite dialog. Never returns the caller.
    """
    term = q.strip()
    if len(term) < 2:
        raise HTTPException(status_code=400, detail="Search query must be at least 2 characters")

    pattern = f"%{term.lower()}%"
    users = db.scalars(
        select(User)
        .where(
            User.id != current_user.id,
            or_(func.lower(User.username).like(pattern), func.lower(User.email).like(pattern)),
        )
        .order_by(User.username.asc())
        .limit(SEARCH_LIMIT)
    ).all()
    return ok("Users retrieved successfully", {"users": [UserShort.model_validate(u).model_dump() for u in users]})


@router.get("/payment-methods")
def get_payment_methods(current_user: User = Depends(get_current_user)):
    return ok("Payment methods retrieved successfully", _payment_methods(current_user))


@router.patch("/payment-methods")
def update_payment_methods(
    payload: PaymentMethodsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fields = payload.model_dump(exclude_unset=True)

    try:
        if "paynow_phone" in fields:
            current_user.paynow_phone = normalize_sg_phone(fields["paynow_phone"])
        if "paynow_nric" in fields:
            nric = normalize_nric(fields["paynow_nric"])
            if nric and db.scalar(select(User.id).where(User.paynow_nric == nric, User.id != current_user.id)):
                raise HTTPException(status_code=409, detail="NRIC is already registered to another account")
            current_user.paynow_nric = nric
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if "paynow_enabled" in fields and fields["paynow_enabled"] is not None:
        if fields["paynow_enabled"] and not current_user.paynow_phone:
            raise HTTPException(status_code=400, detail="A PayNow phone number is required to enable PayNow")
        current_user.paynow_enabled = fields["paynow_enabled"]
    elif not current_user.paynow_phone:
        current_user.paynow_enabled = False

    db.commit()
    db.refresh(current_user)
    return ok("Payment methods updated successfully", _payment_methods(current_user))
