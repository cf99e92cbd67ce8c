import pytest

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, JWT_SECRET
from dishboard.auth.security import decode_access_token


def test_login_returns_token_with_user_claims(client, make_user):
    user_id = make_user("alice", "wonderland")

    r = client.post("/api/login", json={"username": "alice", "password": "wonderland"})

    assert r.status_code == 200
    claims = decode_access_token(token=r.json()["token"], secret=JWT_SECRET)
    assert claims["id"] == user_id
    assert claims["username"] == "alice"
    assert "role" not in claims


@pytest.mark.parametrize(
    "body",
    [
        {"username": "alice", "password": "wrong"},
        {"username": "nobody", "password": "wonderland"},
    ],
)
def test_login_with_bad_credentials_is_400_without_token(client, make_user, body):
    make_user("alice", "wonderland")

    r = client.post("/api/login", json=body)

    assert r.status_code == 400
    assert r.json() == {"message": "invalid_credentials"}
    assert "token" not in r.json()


def test_login_requires_both_fields(client):
    r = client.post("/api/login", json={"username": "alice"})

    assert r.status_code == 400


def test_login_rejects_non_json_body(client):
    r = client.post("/api/login", content=b"nope", headers={"Content-Type": "application/json"})

    assert r.status_code == 400
    assert r.json() == {"message": "invalid_request"}


def test_admin_login_issues_admin_role(client):
    r = client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})

    assert r.status_code == 200
    claims = decode_access_token(token=r.json()["token"], secret=JWT_SECRET)
    assert claims["username"] == ADMIN_USERNAME
    assert claims["role"] == "admin"


def test_admin_login_refuses_other_users(client, make_user):
    make_user("alice", "wonderland")

    r = client.post("/api/admin/login", json={"username": "alice", "password": "wonderland"})

    assert r.status_code == 403


def test_admin_login_bad_password_is_400(client):
    r = client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": "nope"})

    assert r.status_code == 400


def test_admin_login_requires_both_fields(client):
    r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})

    assert r.status_code == 400


def test_admin_me(client, make_user, login):
    make_user("alice")

    r = client.get("/api/admin/me", headers=login(ADMIN_USERNAME, ADMIN_PASSWORD))
    assert r.status_code == 200
    assert r.json() == {"ok": True, "username": ADMIN_USERNAME}

    assert client.get("/api/admin/me", headers=login("alice")).status_code == 403
    assert client.get("/api/admin/me").status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
