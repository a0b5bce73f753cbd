"""
Shared fixtures: in-memory SQLite app, users and logged-in clients.
"""
import os

# must be set before paypals.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SMTP_HOST"] = ""
os.environ["GOOGLE_MAPS_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from paypals.db import Base, get_db
from paypals.main import app
from paypals.models.circle import Circle, CircleType
from paypals.models.circle_member import CircleMember, MemberRole, MemberStatus
from paypals.models.role import Role, ROLE_USER
from paypals.models.user import User
from paypals.utils.security import ACCESS_COOKIE, create_access_token, hash_password

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Secret123!"


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make(username, email=None, *, verified=True, paynow_phone=None):
        role = db_session.query(Role).filter_by(name=ROLE_USER).first()
        if not role:
            role = Role(name=ROLE_USER)
            db_session.add(role)
            db_session.flush()
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password=hash_password(PASSWORD),
            role_id=role.id,
            email_verified=verified,
            paynow_phone=paynow_phone,
            paynow_enabled=bool(paynow_phone),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture
def login_as(client):
    """Returns a separate TestClient carrying the user's access cookie."""
    clients = []

    def _login(user):
        c = TestClient(app)
        c.cookies.set(ACCESS_COOKIE, create_access_token(user))
        clients.append(c)
        return c

    yield _login
    for c in clients:
        c.close()


@pytest.fixture
def make_circle(db_session):
    def _make(admin, *members, name="Flat", type=CircleType.roommates):
        circle = Circle(name=name, type=type)
        db_session.add(circle)
        db_session.flush()
        db_session.add(CircleMember(
            circle_id=circle.id, user_id=admin.id, role=MemberRole.admin, status=MemberStatus.active,
        ))
        for m in members:
            db_session.add(CircleMember(
                circle_id=circle.id, user_id=m.id, role=MemberRole.member, status=MemberStatus.active,
            ))
        db_session.commit()
        db_session.refresh(circle)
        return circle
    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice", paynow_phone="+6591234567")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def session_factory(db_session):
    """sessionmaker bound to the test database, for code that opens its own sessions."""
    return TestingSessionLocal
