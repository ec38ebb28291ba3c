"""Auth API tests."""

from uuid import uuid4


def _email():
    return f"auth_{uuid4().hex[:10]}@test.com"


def test_register_login_me(client):
    email = _email()
    r = client.post("/auth/register", json={"email": email, "password": "secret1", "full_name": "Asha"})
    assert r.status_code == 200
    assert r.json()["email"] == email

    token = client.post("/auth/login", json={"email": email, "password": "secret1"}).json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Asha"


def test_register_rejects_short_password_and_duplicates(client):
    email = _email()
    assert client.post("/auth/register", json={"email": email, "password": "123"}).status_code == 422
    assert client.post("/auth/register", json={"email": email, "password": "secret1"}).status_code == 200
    assert client.post("/auth/register", json={"email": email, "password": "secret1"}).status_code == 400


def test_wrong_password_is_unauthorized(client):
    email = _email()
    client.post("/auth/register", json={"email": email, "password": "secret1"})
    assert client.post("/auth/login", json={"email": email, "password": "nope"}).status_code == 401


def test_too_many_logins_are_rate_limited(client):
    email = _email()
    client.post("/auth/register", json={"email": email, "password": "secret1"})
    for _ in range(5):
        assert client.post("/auth/login", json={"email": email, "password": "bad"}).status_code == 401

    r = client.post("/auth/login", json={"email": email, "password": "secret1"})
    assert r.status_code == 429
    assert "Too many login attempts" in r.json()["detail"]
    assert int(r.headers["Retry-After"]) > 0


def test_invalid_token_is_rejected(client):
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_update_profile_sets_emergency_contact(client, register_and_login):
    _, headers = register_and_login()
    r = client.put("/auth/me", headers=headers, json={"emergency_contact_phone": "555-0199"})
    assert r.status_code == 200
    assert r.json()["emergency_contact_phone"] == "555-0199"
