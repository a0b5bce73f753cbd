"""
Circle CRUD and membership changes.
"""
from paypals.models.audit_log import AuditLog
from paypals.models.circle import Circle
from paypals.models.circle_member import CircleMember, MemberRole, MemberStatus


def test_create_circle_makes_creator_admin(login_as, db_session, alice):
    c = login_as(alice)
    res = c.post("/api/circles/", json={"name": "  Trip  ", "type": "travel"})
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["name"] == "Trip"
    assert data["type"] == "travel"

    member = db_session.query(CircleMember).filter_by(circle_id=data["id"]).one()
    assert member.user_id == alice.id
    assert member.role == MemberRole.admin
    assert db_session.query(AuditLog).filter_by(action_type="create", target_entity="circle").count() == 1


def test_create_circle_rejects_unknown_type(login_as, alice):
    res = login_as(alice).post("/api/circles/", json={"name": "X", "type": "pirates"})
    assert res.status_code == 400
    assert res.json()["detail"].startswith("Invalid circle type")


def test_user_circles_lists_member_count_and_role(login_as, make_circle, alice, bob):
    make_circle(alice, bob, name="Flat")
    make_circle(bob, name="Solo")

    res = login_as(alice).get("/api/circles/user")
    assert res.status_code == 200
    circles = res.json()["data"]
    assert len(circles) == 1
    assert circles[0]["memberCount"] == 2
    assert circles[0]["userRole"] == "admin"

    roles = {c["name"]: c["userRole"] for c in login_as(bob).get("/api/circles/user").json()["data"]}
    assert roles == {"Flat": "member", "Solo": "admin"}


def test_get_circle_access(login_as, make_circle, alice, bob, carol):
    circle = make_circle(alice, bob)

    assert login_as(alice).get("/api/circles/999").status_code == 404

    res = login_as(carol).get(f"/api/circles/{circle.id}")
    assert res.status_code == 403
    assert res.json()["detail"] == "Access denied: Not a member"

    res = login_as(bob).get(f"/api/circles/{circle.id}")
    assert res.status_code == 200
    assert {m["user_id"] for m in res.json()["data"]["members"]} == {alice.id, bob.id}


def test_update_and_delete_are_admin_only(login_as, db_session, make_circle, alice, bob):
    circle_id = make_circle(alice, bob).id

    assert login_as(bob).put(f"/api/circles/{circle_id}", json={"name": "Mine"}).status_code == 403

    res = login_as(alice).put(f"/api/circles/{circle_id}", json={"name": "Renamed"})
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "Renamed"

    assert login_as(bob).delete(f"/api/circles/{circle_id}").status_code == 403
    assert login_as(alice).delete(f"/api/circles/{circle_id}").status_code == 200

    db_session.expire_all()
    assert db_session.get(Circle, circle_id) is None
    assert db_session.query(CircleMember).filter_by(circle_id=circle_id).count() == 0


def test_last_admin_cannot_leave(login_as, db_session, make_circle, alice, bob):
    circle = make_circle(alice, bob)

    assert login_as(alice).post(f"/api/circles/{circle.id}/leave").status_code == 400
    assert login_as(bob).post(f"/api/circles/{circle.id}/leave").status_code == 200

    db_session.expire_all()
    row = db_session.query(CircleMember).filter_by(circle_id=circle.id, user_id=bob.id).one()
    assert row.status == MemberStatus.inactive


def test_remove_and_promote_members(login_as, db_session, make_circle, alice, bob, carol):
    circle = make_circle(alice, bob, carol)
    admin = login_as(alice)

    assert login_as(bob).delete(f"/api/circles/{circle.id}/members/{carol.id}").status_code == 403
    assert admin.delete(f"/api/circles/{circle.id}/members/{alice.id}").status_code == 400

    assert admin.patch(f"/api/circles/{circle.id}/members/{bob.id}/promote").status_code == 200
    assert admin.patch(f"/api/circles/{circle.id}/members/{bob.id}/promote").status_code == 400

    assert admin.delete(f"/api/circles/{circle.id}/members/{carol.id}").status_code == 200
    assert admin.patch(f"/api/circles/{circle.id}/members/{carol.id}/promote").status_code == 404

    # alice can leave now that bob is an admin too
    assert admin.post(f"/api/circles/{circle.id}/leave").status_code == 200
