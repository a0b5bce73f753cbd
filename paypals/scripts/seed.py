"""
Idempotent demo data. Run:
  $ python -m paypals.scripts.seed

Creates the roles, a few verified demo users (password: Password123!) and two
circles with members. Existing rows are left as they are.
"""
from __future__ import annotations

import sys

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from paypals.db import SessionLocal
from paypals.models.circle import Circle, CircleType
from paypals.models.circle_member import MemberRole
from paypals.models.role import Role, ROLE_USER, ROLE_ADMIN
from paypals.models.user import User
from paypals.services.circle_membership import ensure_member
from paypals.utils.security import hash_password

DEMO_PASSWORD = "Password123!"

USERS = [
    {"username": "johndoe", "email": "john@example.com", "paynow_phone": "+6591234567"},
    {"username": "janesmith", "email": "jane@example.com", "paynow_phone": "+6598765432"},
    {"username": "alextan", "email": "alex@example.com", "paynow_phone": None},
    {"username": "meilim", "email": "mei@example.com", "paynow_phone": None},
]

CIRCLES = [
    {"name": "Flatmates", "type": CircleType.roommates, "admin": "johndoe", "members": ["janesmith", "alextan"]},
    {"name": "Bali Trip", "type": CircleType.travel, "admin": "janesmith", "members": ["johndoe", "meilim"]},
]


def _role(db: Session, name: str) -> Role:
    role = db.scalar(select(Role).where(Role.name == name))
    if not role:
        role = Role(name=name)
        db.add(role)
        db.flush()
        print(f"Seeded role {name}")
    return role


def _user(db: Session, row: dict, role: Role) -> User:
    user = db.scalar(select(User).where(User.username == row["username"]))
    if user:
        return user
    user = User(
        username=row["username"],
        email=row["email"],
        password=hash_password(DEMO_PASSWORD),
        role_id=role.id,
        email_verified=True,
        paynow_phone=row["paynow_phone"],
        paynow_enabled=bool(row["paynow_phone"]),
    )
    db.add(user)
    db.flush()
    print(f"Seeded user {user.username}")
    return user


def _circle(db: Session, row: dict, users: dict) -> Circle:
    circle = db.scalar(select(Circle).where(Circle.name == row["name"]))
    if not circle:
        circle = Circle(name=row["name"], type=row["type"])
        db.add(circle)
        db.flush()
        print(f"Seeded circle {circle.name}")
    ensure_member(db, circle.id, users[row["admin"]].id, role=MemberRole.admin)
    for username in row["members"]:
        ensure_member(db, circle.id, users[username].id)
    return circle


def main() -> int:
    try:
        with SessionLocal() as db:
            _role(db, ROLE_ADMIN)
            user_role = _role(db, ROLE_USER)
            users = {row["username"]: _user(db, row, user_role) for row in USERS}
            for row in CIRCLES:
                _circle(db, row, users)
            db.commit()
    except SQLAlchemyError as e:
        print("[ERROR] Seeding failed:", e)
        return 1
    print("Demo data seeded ✔")
    return 0


if __name__ == "__main__":
    sys.exit(main())
