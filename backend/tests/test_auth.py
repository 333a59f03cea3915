import pytest

from cloudnotes.errors import Unauthenticated
from cloudnotes.utils import auth_hash
from cloudnotes.utils.auth_gate import AuthGate
from cloudnotes.utils.jwt_auth import JwtIdentityProvider

CTX = auth_hash.build_context(rounds=4)


def test_hash_and_verify():
    pw = "correct horse battery staple"
    h = auth_hash.hash_password(pw, CTX)
    assert isinstance(h, str) and len(h) > 0
    assert auth_hash.verify_password(pw, h, CTX) is True


def test_wrong_password_fails():
    h = auth_hash.hash_password("s3cret", CTX)
    assert auth_hash.verify_password("wrong", h, CTX) is False
    assert auth_hash.verify_password("s3cret", "not-a-hash", CTX) is False


def test_hashes_differ_for_same_password():
    h1 = auth_hash.hash_password("repeatable", CTX)
    h2 = auth_hash.hash_password("repeatable", CTX)
    # salted: two hashes differ
    assert h1 != h2
    assert auth_hash.verify_password("repeatable", h1, CTX)
    assert auth_hash.verify_password("repeatable", h2, CTX)


class DownProvider:
    def verify_token(self, token):
        raise ConnectionError("identity provider unreachable")


@pytest.fixture()
def provider():
    return JwtIdentityProvider("gate-secret")


def test_gate_accepts_valid_bearer(provider):
    gate = AuthGate(provider)
    token = provider.create_access_token("userA")
    assert gate.verify(f"Bearer {token}") == "userA"
    assert gate.verify(f"bearer {token}") == "userA"


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Token abc", "Bearer a b"])
def test_gate_rejects_missing_or_malformed_header(provider, header):
    with pytest.raises(Unauthenticated):
        AuthGate(provider).verify(header)


def test_gate_rejects_token_from_other_issuer(provider):
    other = JwtIdentityProvider("another-secret").create_access_token("userA")
    with pytest.raises(Unauthenticated):
        AuthGate(provider).verify(f"Bearer {other}")


def test_gate_rejects_expired_token():
    expired = JwtIdentityProvider("gate-secret", exp_minutes=-1)
    token = expired.create_access_token("userA")
    with pytest.raises(Unauthenticated):
        AuthGate(JwtIdentityProvider("gate-secret")).verify(f"Bearer {token}")


def test_gate_collapses_provider_outage():
    with pytest.raises(Unauthenticated):
        AuthGate(DownProvider()).verify("Bearer whatever")


def test_provider_requires_secret():
    with pytest.raises(RuntimeError):
        JwtIdentityProvider("")


def test_register_login_token_returned(client):
    r = client.post("/auth/register", json={"user_id": "userA", "password": "StrongPassw0rd!"})
    assert r.status_code == 201

    r = client.post("/auth/login", json={"user_id": "userA", "password": "StrongPassw0rd!"})
    assert r.status_code == 200
    data = r.json()
    assert data["token_type"] == "bearer"

    r = client.get("/notes", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert r.status_code == 200
    assert r.json() == {"notes": []}


def test_register_twice_conflicts(client):
    body = {"user_id": "userA", "password": "StrongPassw0rd!"}
    assert client.post("/auth/register", json=body).status_code == 201
    r = client.post("/auth/register", json=body)
    assert r.status_code == 409
    assert r.json() == {"error": "User exists"}


def test_login_wrong_password_or_unknown_user(client):
    client.post("/auth/register", json={"user_id": "userA", "password": "StrongPassw0rd!"})
    r = client.post("/auth/login", json={"user_id": "userA", "password": "wrongwrongwrong"})
    assert r.status_code == 401
    r = client.post("/auth/login", json={"user_id": "nobody", "password": "wrongwrongwrong"})
    assert r.status_code == 401


def test_register_validation_is_400(client):
    r = client.post("/auth/register", json={"user_id": "ab", "password": "short"})
    assert r.status_code == 400


def test_verify_returns_profile(client):
    client.post(
        "/auth/register",
        json={"user_id": "userA", "password": "StrongPassw0rd!", "name": "Ana", "email": "ana@example.com"},
    )
    token = client.post("/auth/login", json={"user_id": "userA", "password": "StrongPassw0rd!"}).json()["access_token"]

    r = client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    body = r.json()
    assert body["userId"] == "userA"
    assert body["profile"]["name"] == "Ana"
    assert body["profile"]["email"] == "ana@example.com"
    assert "memberSince" in body["profile"]


def test_provider_outage_is_401_at_the_api(app, client):
    app.state.auth_gate = AuthGate(DownProvider())
    r = client.get("/notes", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}
