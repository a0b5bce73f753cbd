"""
Invitation lifecycle: send, accept, reject, cancel, expiry on read.
"""
from datetime import timedelta
from unittest.mock import patch

from paypals.models.audit_log import AuditLog
from paypals.models.circle_member import CircleMember, MemberStatus
from paypals.models.invitation import Invitation, InvitationStatus
from paypals.models.notification import Notification, CIRCLE_INVITATION, MEMBER_JOINED
from paypals.utils.clock import utc_now


def _invite(client, circle_id, **body):
    return client.post(f"/api/invitations/{circle_id}", json=body)


def test_send_invitation_by_id_notifies_invitee(login_as, db_session, make_circle, alice, bob):
    circle = make_circle(alice)
    res = _invite(login_as(alice), circle.id, inviteeId=bob.id)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["status"] == "pending"
    assert data["invitee_id"] == bob.id

    n = db_session.query(Notification).filter_by(user_id=bob.id, type=CIRCLE_INVITATION).one()
    assert n.related_circle_id == circle.id
    assert db_session.query(AuditLog).filter_by(action_type="invite").count() == 1


def test_send_invitation_validation(login_as, make_circle, alice, bob, carol):
    circle = make_circle(alice, carol)
    admin = login_as(alice)

    res = _invite(admin, circle.id)
    assert res.status_code == 400
    assert res.json()["detail"] == "Either inviteeId or email is required"

    assert _invite(login_as(carol), circle.id, inviteeId=bob.id).status_code == 403
    assert _invite(admin, circle.id, inviteeId=999).status_code == 404
    assert _invite(admin, circle.id, inviteeId=alice.id).json()["detail"] == "You cannot invite yourself"
    assert _invite(admin, circle.id, inviteeId=carol.id).json()["detail"] == "User is already a member of this circle"

    assert _invite(admin, circle.id, inviteeId=bob.id).status_code == 201
    res = _invite(admin, circle.id, inviteeId=bob.id)
    assert res.status_code == 400
    assert res.json()["detail"] == "An invitation is already pending for this user"


def test_invite_by_unregistered_email_sends_mail(login_as, db_session, make_circle, alice):
    circle = make_circle(alice)
    with patch("paypals.routers.invitations.email_service.send_invitation_email", return_value=True) as send:
        res = _invite(login_as(alice), circle.id, email="New.Friend@Example.com")
    assert res.status_code == 201
    assert res.json()["data"]["email"] == "new.friend@example.com"
    send.assert_called_once_with("new.friend@example.com", "alice", circle.name)


def test_invite_by_registered_email_resolves_user(login_as, make_circle, alice, bob):
    circle = make_circle(alice)
    res = _invite(login_as(alice), circle.id, email=bob.email)
    assert res.status_code == 201
    assert res.json()["data"]["invitee_id"] == bob.id


def test_accept_invitation_joins_circle(login_as, db_session, make_circle, alice, bob):
    circle = make_circle(alice)
    inv_id = _invite(login_as(alice), circle.id, inviteeId=bob.id).json()["data"]["id"]

    res = login_as(bob).post(f"/api/invitations/{inv_id}/accept")
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "accepted"

    db_session.expire_all()
    member = db_session.query(CircleMember).filter_by(circle_id=circle.id, user_id=bob.id).one()
    assert member.status == MemberStatus.active
    assert db_session.query(Notification).filter_by(user_id=alice.id, type=MEMBER_JOINED).count() == 1

    res = login_as(bob).post(f"/api/invitations/{inv_id}/accept")
    assert res.status_code == 400
    assert res.json()["detail"] == "Invitation is no longer valid"


def test_only_invitee_can_respond(login_as, make_circle, alice, bob, carol):
    circle = make_circle(alice)
    inv_id = _invite(login_as(alice), circle.id, inviteeId=bob.id).json()["data"]["id"]

    res = login_as(carol).post(f"/api/invitations/{inv_id}/reject")
    assert res.status_code == 403
    assert login_as(bob).post(f"/api/invitations/{inv_id}/reject").json()["data"]["status"] == "rejected"


def test_accept_expired_invitation_marks_it_expired(login_as, db_session, make_circle, alice, bob):
    circle = make_circle(alice)
    inv = Invitation(
        circle_id=circle.id,
        inviter_id=alice.id,
        invitee_id=bob.id,
        status=InvitationStatus.pending,
        expires_at=utc_now() - timedelta(hours=1),
    )
    db_session.add(inv)
    db_session.commit()

    res = login_as(bob).post(f"/api/invitations/{inv.id}/accept")
    assert res.status_code == 400
    assert res.json()["detail"] == "Invitation has expired"

    db_session.expire_all()
    assert db_session.get(Invitation, inv.id).status == InvitationStatus.expired


def test_my_invitations_expires_overdue_and_paginates(login_as, db_session, make_circle, alice, bob):
    c1 = make_circle(alice, name="One")
    c2 = make_circle(alice, name="Two")
    db_session.add_all([
        Invitation(circle_id=c1.id, inviter_id=alice.id, invitee_id=bob.id, expires_at=utc_now() + timedelta(days=7)),
        Invitation(circle_id=c2.id, inviter_id=alice.id, invitee_id=bob.id, expires_at=utc_now() - timedelta(days=1)),
    ])
    db_session.commit()

    c = login_as(bob)
    res = c.get("/api/invitations/my", params={"status": "pending"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["total"] == 1
    assert data["invitations"][0]["circle"]["name"] == "One"

    res = c.get("/api/invitations/my", params={"status": "expired"})
    assert res.json()["data"]["total"] == 1

    assert c.get("/api/invitations/my", params={"sortOrder": "sideways"}).status_code == 400


def test_my_invitations_expires_overdue_email_invitations(login_as, db_session, make_circle, alice, bob):
    """An overdue invitation addressed to the caller's email is swept like one addressed by id."""
    circle = make_circle(alice)
    inv = Invitation(
        circle_id=circle.id,
        inviter_id=alice.id,
        email=bob.email.upper(),
        expires_at=utc_now() - timedelta(days=1),
    )
    db_session.add(inv)
    db_session.commit()

    res = login_as(bob).get("/api/invitations/my")
    assert res.status_code == 200
    assert [i["status"] for i in res.json()["data"]["invitations"]] == ["expired"]

    db_session.expire_all()
    assert db_session.get(Invitation, inv.id).status == InvitationStatus.expired
    assert db_session.query(AuditLog).filter_by(action_type="expire_invitation", target_id=inv.id).count() == 1


def test_cancel_invitation(login_as, db_session, make_circle, alice, bob):
    circle = make_circle(alice)
    inv_id = _invite(login_as(alice), circle.id, inviteeId=bob.id).json()["data"]["id"]

    assert login_as(bob).delete(f"/api/invitations/{inv_id}").status_code == 403
    assert login_as(alice).delete(f"/api/invitations/{inv_id}").status_code == 200

    db_session.expire_all()
    assert db_session.get(Invitation, inv_id) is None
    assert login_as(alice).delete(f"/api/invitations/{inv_id}").status_code == 404


def test_circle_invitations_admin_only(login_as, make_circle, alice, bob, carol):
    circle = make_circle(alice, carol)
    _invite(login_as(alice), circle.id, inviteeId=bob.id)

    assert login_as(carol).get(f"/api/invitations/circle/{circle.id}").status_code == 403
    res = login_as(alice).get(f"/api/invitations/circle/{circle.id}")
    assert len(res.json()["data"]["invitations"]) == 1
