# paypals/schemas/transaction.py
# -----------------------------------------------------------------------------
# Pydantic schemas: Transaction
# -----------------------------------------------------------------------------
# Shape checks only. The split rules (creator auto-add, sum equals total,
# participants must be circle members) live in services/transactions.py
# because they need the database and answer with 400, not 422.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, validator, condecimal

from paypals.utils.sanitize import clean_required, clean_text

Money = condecimal(max_digits=12, decimal_places=2, ge=0)
PositiveMoney = condecimal(max_digits=12, decimal_places=2, gt=0)


class ParticipantIn(BaseModel):
    user_id: Optional[int] = None
    email: Optional[EmailStr] = None
    amount_owed: Money

    @validator("email", always=True)
    def _user_or_email(cls, v, values):
        if values.get("user_id") is None and v is None:
            raise ValueError("Each participant needs a user_id or an email")
        return v


class TransactionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    total_amount: PositiveMoney
    participants: List[ParticipantIn] = Field(default_factory=list)

    location_name: Optional[str] = None
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)
    place_id: Optional[str] = None

    @validator("name")
    def _clean_name(cls, v: str) -> str:
        return clean_required(v)

    @validator("description", "location_name")
    def _clean_free_text(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @validator("category")
    def _normalize_category(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(TransactionBase):
    """Full replacement: the participant list replaces the existing split."""


class PaymentStatusUpdate(BaseModel):
    payment_status: str
    payment_method: Optional[str] = None


class BulkStatusUpdate(BaseModel):
    transaction_ids: List[int] = Field(..., min_length=1, max_length=100)
    payment_status: str


class ReminderIn(BaseModel):
    transaction_id: Optional[int] = None
