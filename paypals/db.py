# paypals/db.py
# SQLAlchemy setup: engine, sessions, Base and explicit model imports.

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from paypals.config import DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # sqlite is used for local runs and tests only
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 20,
        "pool_timeout": 60,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

from paypals.models import (  # noqa: E402,F401
    role,
    user,
    email_verification_token,
    circle,
    circle_member,
    transaction,
    transaction_member,
    invitation,
    notification,
    audit_log,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
