# paypals/routers/auth.py
# -----------------------------------------------------------------------------
# ROUTER: registration, login/logout, email verification, session refresh
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from starlette import status
from sqlalchemy import select, func, delete
from sqlalchemy.orm import Session

from paypals import config
from paypals.db import get_db
from paypals.models.email_verification_token import EmailVerificationToken
from paypals.models.role import Role, ROLE_USER
from paypals.models.user import User
from paypals.schemas.user import RegisterIn, LoginIn, ResendVerificationIn, UserOut
from paypals.services import email as email_service
from paypals.services.notifications import send_welcome
from paypals.utils import ratelimit
from paypals.utils.clock import utc_now
from paypals.utils.security import (
    REFRESH_COOKIE,
    clear_session,
    decode_token,
    get_current_user,
    hash_password,
    issue_session,
    set_access_cookie,
    verify_password,
)

log = logging.getLogger(__name__)

router = APIRouter()

VERIFICATION_TTL = timedelta(hours=24)


# ===== Helpers ===============================================================

def _get_or_create_role(db: Session, name: str) -> Role:
    role = db.scalar(select(Role).where(Role.name == name))
    if role:
        return role
    role = Role(name=name)
    db.add(role)
    db.flush()
    return role


def _new_verification_token(db: Session, user: User) -> EmailVerificationToken:
    tok = EmailVerificationToken(
        user_id=user.id,
        token=secrets.token_hex(32),
        expires_at=utc_now() + VERIFICATION_TTL,
    )
    db.add(tok)
    return tok


def _session_user(user: User) -> dict:
    return {
        "user_id": user.id,
        "username": user.username,
        "role_id": user.role_id,
        "role_name": user.role.name if user.role else None,
    }


# ===== Endpoints =============================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    """
    Creates the account, emails a verification link and opens a session.
    A failed verification email does not fail the registration.
    """
    email = payload.email.lower()
    if db.scalar(select(User.id).where(func.lower(User.username) == payload.username.lower())):
        raise HTTPException(status_code=409, detail="Username already exists")
    if db.scalar(select(User.id).where(func.lower(User.email) == email)):
        raise HTTPException(status_code=409, detail="Email already exists")

    role = _get_or_create_role(db, ROLE_USER)
    user = User(
        username=payload.username,
        email=email,
        password=hash_password(payload.password),
        role_id=role.id,
        email_verified=False,
    )
    db.add(user)
    db.flush()

    token = _new_verification_token(db, user)
    send_welcome(db, user.id, user.username)
    db.commit()
    db.refresh(user)

    if not email_service.send_verification_email(user.email, user.username, token.token):
        log.warning("verification email not delivered: user_id=%s", user.id)

    issue_session(response, user)
    log.info("user registered: id=%s username=%s", user.id, user.username)
    return {"message": "Registration successful", "user": _session_user(user)}


@router.post("/login")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    ratelimit.check_login_allowed(request, payload.username)
    try:
        user = _authenticate(db, payload)
    except HTTPException:
        ratelimit.record_login_failure(request, payload.username)
        raise

    issue_session(response, user)
    log.info("user logged in: id=%s", user.id)
    return {"message": "Login successful", "user": _session_user(user)}


def _authenticate(db: Session, payload: LoginIn) -> User:
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = db.scalar(select(User).where(User.username == payload.username))
    if not user:
        raise HTTPException(status_code=404, detail=f"Username {payload.username} does not exist")
    if not user.email_verified:
        raise HTTPException(status_code=401, detail="Please verify your email before logging in")
    if not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail="Incorrect password")
    return user


@router.post("/logout")
def logout(response: Response):
    clear_session(response)
    return {"message": "Logged out successfully"}


@router.post("/refresh")
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="No refresh token provided")
    payload = decode_token(token, config.JWT_REFRESH_SECRET_KEY)
    user = db.get(User, payload["user_id"]) if payload else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    set_access_cookie(response, user)
    return {"message": "Token refreshed", "user": _session_user(user)}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "message": "Authenticated",
        "user": {**_session_user(current_user), **UserOut.model_validate(current_user).model_dump()},
    }


@router.get("/verify-email/{token}")
def verify_email(token: str, db: Session = Depends(get_db)):
    row = db.scalar(select(EmailVerificationToken).where(EmailVerificationToken.token == token))
    if not row:
        raise HTTPException(status_code=400, detail="Invalid verification token")
    if row.used:
        raise HTTPException(status_code=400, detail="Verification token has already been used")
    if row.expires_at < utc_now():
        raise HTTPException(status_code=400, detail="Verification token has expired")

    row.used = True
    row.user.email_verified = True
    db.commit()
    log.info("email verified: user_id=%s", row.user_id)
    return {"message": "Email verified successfully"}


@router.post("/resend-verification")
def resend_verification(payload: ResendVerificationIn, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(func.lower(User.email) == payload.email.lower()))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="Email is already verified")

    db.execute(delete(EmailVerificationToken).where(EmailVerificationToken.user_id == user.id))
    token = _new_verification_token(db, user)
    db.commit()

    sent = email_service.send_verification_email(user.email, user.username, token.token)
    return {"message": "Verification email sent" if sent else "Verification token regenerated"}
