"""
Registration, login, email verification and the cookie session.
"""
from datetime import timedelta
from unittest.mock import patch

from paypals.models.email_verification_token import EmailVerificationToken
from paypals.models.notification import Notification, GENERAL
from paypals.models.user import User
from paypals.utils.clock import utc_now
from paypals.utils.security import ACCESS_COOKIE, REFRESH_COOKIE, create_refresh_token

PASSWORD = "Secret123!"  # conftest.make_user password


def _register(client, **overrides):
    body = {"username": "dave", "email": "dave@example.com", "password": "Passw0rd!"}
    body.update(overrides)
    return client.post("/api/register", json=body)


def test_register_creates_user_token_and_welcome(client, db_session):
    """Registration hashes the password, issues a token, a welcome notification and cookies."""
    with patch("paypals.routers.auth.email_service.send_verification_email", return_value=True) as send:
        res = _register(client)

    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Registration successful"
    assert body["user"]["username"] == "dave"
    assert body["user"]["role_name"] == "user"
    assert ACCESS_COOKIE in res.cookies
    assert REFRESH_COOKIE in res.cookies

    user = db_session.query(User).filter_by(username="dave").one()
    assert user.password != "Passw0rd!"
    assert user.email_verified is False

    token = db_session.query(EmailVerificationToken).filter_by(user_id=user.id).one()
    send.assert_called_once_with("dave@example.com", "dave", token.token)

    welcome = db_session.query(Notification).filter_by(user_id=user.id).one()
    assert welcome.type == GENERAL


def test_register_email_failure_is_not_fatal(client):
    """A failed verification email still returns 201."""
    with patch("paypals.routers.auth.email_service.send_verification_email", return_value=False):
        res = _register(client)
    assert res.status_code == 201


def test_register_duplicates_conflict(client, bob):
    assert _register(client, username="bob").status_code == 409
    assert _register(client, email="bob@example.com").status_code == 409


def test_register_rejects_weak_password_and_bad_username(client):
    assert _register(client, password="password").status_code == 422
    assert _register(client, username="a_b").status_code == 422


def test_login_flow(client, make_user):
    make_user("erin", verified=False)
    make_user("frank")

    assert client.post("/api/login", json={"username": "frank"}).status_code == 400

    res = client.post("/api/login", json={"username": "ghost", "password": PASSWORD})
    assert res.status_code == 404
    assert res.json()["detail"] == "Username ghost does not exist"

    assert client.post("/api/login", json={"username": "erin", "password": PASSWORD}).status_code == 401

    res = client.post("/api/login", json={"username": "frank", "password": "Wrong123!"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Incorrect password"

    res = client.post("/api/login", json={"username": "frank", "password": PASSWORD})
    assert res.status_code == 200
    assert ACCESS_COOKIE in res.cookies

    me = client.get("/api/me")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "frank"


def test_me_requires_cookie(client):
    res = client.get("/api/me")
    assert res.status_code == 401
    assert res.json()["detail"] == "No token provided"


def test_refresh_cookie_restores_session(client, bob):
    """Without an access cookie, a valid refresh cookie authenticates and reissues it."""
    client.cookies.set(REFRESH_COOKIE, create_refresh_token(bob))
    res = client.get("/api/me")
    assert res.status_code == 200
    assert res.json()["user"]["user_id"] == bob.id
    assert ACCESS_COOKIE in res.cookies


def test_garbage_refresh_cookie_is_rejected(client):
    client.cookies.set(REFRESH_COOKIE, "not-a-jwt")
    res = client.get("/api/me")
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid or expired token"


def test_verify_email(client, db_session, make_user):
    user = make_user("gina", verified=False)
    row = EmailVerificationToken(user_id=user.id, token="t" * 64, expires_at=utc_now() + timedelta(hours=1))
    db_session.add(row)
    db_session.commit()

    assert client.get("/api/verify-email/unknown").status_code == 400

    res = client.get(f"/api/verify-email/{'t' * 64}")
    assert res.status_code == 200

    db_session.expire_all()
    assert db_session.get(User, user.id).email_verified is True

    res = client.get(f"/api/verify-email/{'t' * 64}")
    assert res.status_code == 400
    assert res.json()["detail"] == "Verification token has already been used"


def test_verify_email_expired(client, db_session, make_user):
    user = make_user("hank", verified=False)
    db_session.add(EmailVerificationToken(user_id=user.id, token="e" * 64, expires_at=utc_now() - timedelta(minutes=1)))
    db_session.commit()

    res = client.get(f"/api/verify-email/{'e' * 64}")
    assert res.status_code == 400
    assert res.json()["detail"] == "Verification token has expired"


def test_resend_verification(client, db_session, make_user, bob):
    user = make_user("ivy", verified=False)
    db_session.add(EmailVerificationToken(user_id=user.id, token="o" * 64, expires_at=utc_now() + timedelta(hours=1)))
    db_session.commit()

    assert client.post("/api/resend-verification", json={"email": "nobody@example.com"}).status_code == 404
    assert client.post("/api/resend-verification", json={"email": bob.email}).status_code == 400

    with patch("paypals.routers.auth.email_service.send_verification_email", return_value=True):
        res = client.post("/api/resend-verification", json={"email": user.email})
    assert res.status_code == 200

    db_session.expire_all()
    tokens = db_session.query(EmailVerificationToken).filter_by(user_id=user.id).all()
    assert len(tokens) == 1
    assert tokens[0].token != "o" * 64


def test_logout_clears_cookies(login_as, bob):
    c = login_as(bob)
    res = c.post("/api/logout")
    assert res.status_code == 200
    cleared = [h for h in res.headers.get_list("set-cookie") if "Max-Age=0" in h]
    assert any(h.startswith(f"{ACCESS_COOKIE}=") for h in cleared)
    assert any(h.startswith(f"{REFRESH_COOKIE}=") for h in cleared)


def test_healthcheck(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.json()["docs"] == "/docs"
