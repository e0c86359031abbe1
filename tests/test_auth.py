import re

from fellowship.extensions import db
from fellowship.models import RoleEnum, User

NEW_PARENT = {
    "first_name": "Grace",
    "last_name": "Obi",
    "email": "Grace.Obi@Example.com",
    "phone_number": "0801234567",
    "password": "secret123",
}


def test_register_defaults_to_parent(client):
    response = client.post("/api/auth/register", json=NEW_PARENT)
    assert response.status_code == 201
    body = response.get_json()
    assert body["user"]["role"] == "parent"
    assert body["user"]["email"] == "grace.obi@example.com"
    assert "password_hash" not in body["user"]
    assert body["token"]


def test_register_rejects_admin_and_duplicates(client):
    assert client.post("/api/auth/register", json={**NEW_PARENT, "role": "admin"}).status_code == 403
    assert client.post("/api/auth/register", json={**NEW_PARENT, "role": "teacher"}).status_code == 201

    duplicate_phone = {**NEW_PARENT, "email": "someone@example.com"}
    assert client.post("/api/auth/register", json=duplicate_phone).status_code == 400


def test_register_validation_lists_missing_fields(client):
    response = client.post("/api/auth/register", json={"email": "x@example.com"})
    assert response.status_code == 400
    fields = {e["field"] for e in response.get_json()["errors"]}
    assert {"first_name", "last_name", "phone_number", "password"} <= fields


def test_login_and_me(client, parent):
    response = client.post("/api/auth/login", json={"email": parent.email, "password": "secret123"})
    assert response.status_code == 200
    token = response.get_json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["id"] == parent.id
    assert me.get_json()["children"] == []

    wrong = client.post("/api/auth/login", json={"email": parent.email, "password": "nope"})
    assert wrong.status_code == 401


def test_deactivated_user_is_locked_out(client, auth_header, parent):
    headers = auth_header(parent)
    parent.soft_delete()
    db.session.commit()

    login = client.post("/api/auth/login", json={"email": parent.email, "password": "secret123"})
    assert login.status_code == 401
    assert login.get_json()["error"] == "Your account has been deactivated"
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_missing_and_garbage_tokens(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert "error" in response.get_json()


def test_logout_revokes_token(client, auth_header, parent):
    headers = auth_header(parent)
    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_update_profile_and_change_password(client, auth_header, parent, make_user):
    other = make_user(RoleEnum.parent)
    headers = auth_header(parent)

    taken = client.put("/api/auth/profile", json={"phone_number": other.phone_number}, headers=headers)
    assert taken.status_code == 400

    updated = client.put("/api/auth/profile", json={"first_name": "Gracie"}, headers=headers)
    assert updated.get_json()["first_name"] == "Gracie"

    wrong = client.put("/api/auth/password", json={"current_password": "bad", "new_password": "newpass1"},
                       headers=headers)
    assert wrong.status_code == 400
    ok = client.put("/api/auth/password", json={"current_password": "secret123", "new_password": "newpass1"},
                    headers=headers)
    assert ok.status_code == 200
    assert db.session.get(User, parent.id).check_password("newpass1")


def test_forgot_and_reset_password(app, client, parent):
    assert client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"}).status_code == 404

    response = client.post("/api/auth/forgot-password", json={"email": parent.email})
    assert response.status_code == 200

    mail = app.extensions["mail_outbox"][-1]
    assert mail["to"] == parent.email
    token = re.search(r"/reset-password/([0-9a-f]+)", mail["html"]).group(1)
    # only the hash is stored
    assert db.session.get(User, parent.id).reset_password_token != token

    assert client.put("/api/auth/reset-password/deadbeef", json={"password": "brandnew"}).status_code == 400
    assert client.put(f"/api/auth/reset-password/{token}", json={"password": "short"}).status_code == 400
    assert client.put(f"/api/auth/reset-password/{token}", json={"password": "brandnew"}).status_code == 200

    login = client.post("/api/auth/login", json={"email": parent.email, "password": "brandnew"})
    assert login.status_code == 200
    assert client.put(f"/api/auth/reset-password/{token}", json={"password": "again123"}).status_code == 400


def test_non_string_fields_are_validation_errors(client, auth_header, parent):
    response = client.post("/api/auth/register", json={**NEW_PARENT, "first_name": 5})
    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "first_name"

    assert client.post("/api/auth/register", json={**NEW_PARENT, "email": 42}).status_code == 400
    assert client.post("/api/auth/login", json={"email": 42, "password": "secret123"}).status_code == 400
    assert client.post("/api/auth/forgot-password", json={"email": ["a@b.c"]}).status_code == 400
    assert client.put("/api/auth/profile", json={"last_name": 7}, headers=auth_header(parent)).status_code == 400


def test_reset_email_escapes_the_name(app, client, make_user):
    user = make_user(RoleEnum.parent, first_name="<b>Grace</b>")
    assert client.post("/api/auth/forgot-password", json={"email": user.email}).status_code == 200

    html = app.extensions["mail_outbox"][-1]["html"]
    assert "Hello &lt;b&gt;Grace&lt;/b&gt;," in html
    assert "<b>Grace</b>" not in html


def test_health_is_public(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json()["database"] == "ok"
