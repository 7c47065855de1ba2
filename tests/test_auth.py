import jwt
import pytest

from conftest import PASSWORD, TEST_SECRET, auth_headers
from errors import AuthenticationError
from security import JWT_ALGORITHM, decode_token, hash_password, issue_token, token_user_id, verify_password


def test_login_with_username(client, seed):
    r = client.post("/auth/login", json={"username": "satpam_pusat", "password": PASSWORD})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["user"]["username"] == "satpam_pusat"
    assert body["user"]["role"] == "SECURITY_GUARD"
    assert body["user"]["office"]["name"] == "Kantor Pusat"
    assert "password" not in body["user"]
    assert "passwordHash" not in body["user"]

    r = client.get("/users/profile", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200
    assert r.json()["id"] == seed.guard.id


def test_login_with_nik(client, seed):
    r = client.post("/auth/login", json={"username": "0000000001", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "ADMIN"


def test_login_wrong_password(client, seed):
    r = client.post("/auth/login", json={"username": "admin", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json() == {"error": "invalid username or password"}


def test_login_inactive_user(client, seed, as_admin):
    client.put(f"/users/{seed.manager.id}", json={"isActive": False}, headers=as_admin)
    r = client.post("/auth/login", json={"username": "manager", "password": PASSWORD})
    assert r.status_code == 401


def test_login_missing_fields(client):
    r = client.post("/auth/login", json={"username": "admin"})
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "password"


def test_missing_token(client, seed):
    r = client.get("/assets")
    assert r.status_code == 401
    assert r.json() == {"error": "access token required"}


def test_garbage_token(client, seed):
    r = client.get("/assets", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_token_for_deactivated_user_is_refused(client, seed, as_admin):
    headers = auth_headers(seed.guard)
    assert client.get("/assets", headers=headers).status_code == 200

    client.put(f"/users/{seed.guard.id}", json={"isActive": False}, headers=as_admin)
    assert client.get("/assets", headers=headers).status_code == 401


def test_role_gate(client, seed, as_guard, as_manager):
    assert client.post("/offices", json={"name": "Kantor Baru"}, headers=as_guard).status_code == 403
    assert client.post("/offices", json={"name": "Kantor Baru"}, headers=as_manager).status_code == 403
    assert client.get("/users", headers=as_guard).status_code == 403
    assert client.get("/users", headers=as_manager).status_code == 200


def test_health_is_public(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_password_hashing():
    hashed = hash_password("rahasia123")
    assert hashed != "rahasia123"
    assert verify_password(hashed, "rahasia123")
    assert not verify_password(hashed, "rahasia124")


def test_token_round_trip_and_expiry():
    token = issue_token(7, "ADMIN", secret_key=TEST_SECRET, hours=1)
    assert token_user_id(token, secret_key=TEST_SECRET) == 7
    assert decode_token(token, secret_key=TEST_SECRET)["role"] == "ADMIN"

    with pytest.raises(AuthenticationError):
        token_user_id(token, secret_key="other-secret")

    expired = jwt.encode({"sub": "7", "exp": 1}, TEST_SECRET, algorithm=JWT_ALGORITHM)
    with pytest.raises(AuthenticationError) as info:
        decode_token(expired, secret_key=TEST_SECRET)
    assert info.value.message == "token has expired"
