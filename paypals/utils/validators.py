# paypals/utils/validators.py
# Input format rules shared by schemas and routers.

from __future__ import annotations

import re
from typing import Optional

USERNAME_RE = re.compile(r"^[A-Za-z0-9]{3,20}$")
PASSWORD_LETTER_RE = re.compile(r"[A-Za-z]")
PASSWORD_DIGIT_RE = re.compile(r"\d")
PASSWORD_SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")

PAYNOW_PHONE_RE = re.compile(r"^(\+65)?[689]\d{7}$")
NRIC_RE = re.compile(r"^[STFG]\d{7}[A-Z]$")


def check_username(v: str) -> str:
    v = (v or "").strip()
    if not USERNAME_RE.match(v):
        raise ValueError("Username must be 3-20 alphanumeric characters")
    return v


def check_password(v: str) -> str:
    if len(v or "") < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not (PASSWORD_LETTER_RE.search(v) and PASSWORD_DIGIT_RE.search(v) and PASSWORD_SPECIAL_RE.search(v)):
        raise ValueError("Password must contain a letter, a number and a special character")
    return v


def normalize_sg_phone(raw: Optional[str]) -> Optional[str]:
    """
    '9123 4567' / '+6591234567' -> '+6591234567'.
    Returns None for empty input, raises ValueError for a bad number.
    """
    if raw is None:
        return None
    phone = re.sub(r"[\s-]", "", raw)
    if phone == "":
        return None
    if not PAYNOW_PHONE_RE.match(phone):
        raise ValueError("Invalid Singapore phone number")
    if not phone.startswith("+65"):
        phone = "+65" + phone
    return phone


def normalize_nric(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    nric = raw.strip().upper()
    if nric == "":
        return None
    if not NRIC_RE.match(nric):
        raise ValueError("Invalid NRIC/FIN format")
    return nric
