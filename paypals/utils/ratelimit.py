# paypals/utils/ratelimit.py
# In-memory request throttling (per process).
#   • login: failed attempts per (ip, username); successful logins are free
#   • everything else: a per-minute quota chosen by the caller's role
# Quotas are read from config on every check so they can be changed at runtime.

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import HTTPException, Request
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from paypals import config
from paypals.utils.security import ACCESS_COOKIE, decode_token

log = logging.getLogger(__name__)

_storage = MemoryStorage()
_limiter = FixedWindowRateLimiter(_storage)

TOO_MANY_LOGINS = "Too many login attempts, please try again later"
TOO_MANY_REQUESTS = "Too many requests, please try again later"


def reset() -> None:
    _storage.reset()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _retry_after(limit, *identifiers: str) -> int:
    stats = _limiter.get_window_stats(limit, *identifiers)
    return max(1, int(stats.reset_time - time.time()))


# ===== Login =====

def _login_key(request: Request, username: Optional[str]) -> tuple:
    return ("login", client_ip(request), (username or "unknown").lower())


def check_login_allowed(request: Request, username: Optional[str]) -> None:
    """Raises 429 once the failed-attempt budget for this ip/username is spent."""
    if not config.RATE_LIMIT_ENABLED:
        return
    limit = parse(config.LOGIN_RATE_LIMIT)
    key = _login_key(request, username)
    if not _limiter.test(limit, *key):
        log.warning("login throttled: ip=%s username=%s", key[1], key[2])
        raise HTTPException(
            status_code=429,
            detail=TOO_MANY_LOGINS,
            headers={"Retry-After": str(_retry_after(limit, *key))},
        )


def record_login_failure(request: Request, username: Optional[str]) -> None:
    if not config.RATE_LIMIT_ENABLED:
        return
    _limiter.hit(parse(config.LOGIN_RATE_LIMIT), *_login_key(request, username))


# ===== Per-role quota =====

def request_role(request: Request) -> str:
    """Role claim of the access cookie; anonymous and invalid sessions count as 'user'."""
    token = request.cookies.get(ACCESS_COOKIE)
    payload = decode_token(token, config.JWT_SECRET_KEY) if token else None
    return (payload or {}).get("role") or "user"


def role_limit(role: str) -> str:
    if role == "admin":
        return config.ADMIN_RATE_LIMIT
    return config.GENERAL_RATE_LIMIT


def hit_request_quota(request: Request) -> Optional[int]:
    """
    Counts one request against the caller's role quota.
    Returns None when allowed, otherwise the Retry-After seconds.
    """
    if not config.RATE_LIMIT_ENABLED:
        return None
    role = request_role(request)
    limit = parse(role_limit(role))
    key = (role, client_ip(request))
    if _limiter.hit(limit, *key):
        return None
    log.warning("request quota exceeded: role=%s ip=%s path=%s", role, key[1], request.url.path)
    return _retry_after(limit, *key)
