# paypals/schemas/user.py

from pydantic import BaseModel, EmailStr, validator
from typing import Optional
from datetime import datetime

from paypals.utils.validators import check_username, check_password


class RegisterIn(BaseModel):
    username: str
    email: EmailStr
    password: str

    @validator("username")
    def _username(cls, v: str) -> str:
        return check_username(v)

    @validator("password")
    def _password(cls, v: str) -> str:
        return check_password(v)


class LoginIn(BaseModel):
    # optional so that a missing field is a 400 from the router, not a 422
    username: Optional[str] = None
    password: Optional[str] = None


class ResendVerificationIn(BaseModel):
    email: EmailStr


class UserShort(BaseModel):
    id: int
    username: str
    email: str

    class Config:
        from_attributes = True


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    role_id: int
    phone_number: Optional[str] = None
    email_verified: bool
    paynow_phone: Optional[str] = None
    paynow_enabled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentMethodsUpdate(BaseModel):
    paynow_phone: Optional[str] = None
    paynow_nric: Optional[str] = None
    paynow_enabled: Optional[bool] = None
