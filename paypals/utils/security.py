# paypals/utils/security.py
"""
Password hashing and cookie sessions.
- hash_password / verify_password: bcrypt
- issue_session / clear_session: authToken + refreshToken httpOnly cookies (JWT)
- get_current_user: FastAPI dependency; falls back to the refresh token and
  reissues the access cookie when the access token is missing or expired.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from paypals import config
from paypals.db import get_db
from paypals.models.user import User

log = logging.getLogger(__name__)

ACCESS_COOKIE = "authToken"
REFRESH_COOKIE = "refreshToken"


# ===== Passwords =====

def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed hash in the DB
        return False


# ===== JWT =====

def _encode(user: User, secret: str, lifetime: timedelta) -> str:
    payload = {
        "user_id": user.id,
        "role_id": user.role_id,
        "role": user.role.name if user.role else None,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(payload, secret, algorithm=config.JWT_ALGORITHM)


def create_access_token(user: User) -> str:
    return _encode(user, config.JWT_SECRET_KEY, timedelta(minutes=config.ACCESS_TOKEN_MINUTES))


def create_refresh_token(user: User) -> str:
    return _encode(user, config.JWT_REFRESH_SECRET_KEY, timedelta(days=config.REFRESH_TOKEN_DAYS))


def decode_token(token: str, secret: str) -> Optional[dict]:
    """Returns the payload, or None when the token is expired or invalid."""
    try:
        return jwt.decode(token, secret, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


# ===== Cookies =====

def _set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="lax",
        path="/",
    )


def set_access_cookie(response: Response, user: User) -> None:
    _set_cookie(response, ACCESS_COOKIE, create_access_token(user), config.ACCESS_TOKEN_MINUTES * 60)


def issue_session(response: Response, user: User) -> None:
    set_access_cookie(response, user)
    _set_cookie(response, REFRESH_COOKIE, create_refresh_token(user), config.REFRESH_TOKEN_DAYS * 86400)


def clear_session(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")


# ===== Dependency =====

def _load_user(db: Session, payload: Optional[dict]) -> Optional[User]:
    if not payload or "user_id" not in payload:
        return None
    return db.get(User, payload["user_id"])


def get_current_user(request: Request, response: Response, db: Session = Depends(get_db)) -> User:
    """
    Resolves the caller from the authToken cookie.
    When it is missing/expired, a valid refreshToken restores the session.
    """
    access = request.cookies.get(ACCESS_COOKIE)
    if access:
        user = _load_user(db, decode_token(access, config.JWT_SECRET_KEY))
        if user:
            return user

    refresh = request.cookies.get(REFRESH_COOKIE)
    if not refresh:
        raise HTTPException(status_code=401, detail="No token provided")

    user = _load_user(db, decode_token(refresh, config.JWT_REFRESH_SECRET_KEY))
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    set_access_cookie(response, user)
    log.debug("access token reissued from refresh token: user_id=%s", user.id)
    return user
