# paypals/config.py
# Environment settings. Everything is read once at import (after load_dotenv).

from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./paypals.db")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ===== Auth =====
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-access-secret")
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "dev-refresh-secret")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", "15"))
REFRESH_TOKEN_DAYS = int(os.getenv("REFRESH_TOKEN_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

# ===== CORS / links =====
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")
CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")

# ===== SMTP =====
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "PayPals <no-reply@paypals.app>")
SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

# ===== Google Maps =====
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GOOGLE_MAPS_TIMEOUT_SECONDS = float(os.getenv("GOOGLE_MAPS_TIMEOUT_SECONDS", "5"))

# ===== Jobs =====
INVITATION_CLEANUP_ENABLED = _env_bool("INVITATION_CLEANUP_ENABLED", False)
INVITATION_RETENTION_DAYS = int(os.getenv("INVITATION_RETENTION_DAYS", "30"))

# ===== Request hardening =====
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "5/15 minutes")
GENERAL_RATE_LIMIT = os.getenv("GENERAL_RATE_LIMIT", "50/minute")
ADMIN_RATE_LIMIT = os.getenv("ADMIN_RATE_LIMIT", "100/minute")
