import uuid

import jwt

from conftest import make_user
from storefront.core_settings import get_settings
from storefront.infrastructure.security import create_access_token


def register(client, email="carol@shop.com", password="secret123", **extra):
    payload = {"name": "Carol", "email": email, "password": password, **extra}
    return client.post("/auth/register", json=payload)


def test_register_returns_usable_token(client):
    resp = register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "USER"
    assert body["email"] == "carol@shop.com"

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/orders/mine", headers=headers).json() == []


def test_register_normalizes_email_and_rejects_duplicates(client):
    assert register(client, email="Carol@Shop.com").json()["email"] == "carol@shop.com"

    resp = register(client, email="carol@shop.com")
    assert resp.status_code == 400
    assert resp.json()["details"] == {"field": "email"}


def test_register_validates_payload(client):
    resp = client.post("/auth/register", json={"name": "Carol", "email": "not-an-email", "password": "123"})
    assert resp.status_code == 422
    assert set(resp.json()["errors"]) == {"email", "password"}


def test_login(client, db):
    user = make_user(db, email="dave@shop.com", password="hunter22")

    resp = client.post("/auth/login", json={"email": "DAVE@shop.com", "password": "hunter22"})

    assert resp.status_code == 200
    claims = jwt.decode(resp.json()["access_token"], get_settings().JWT_SECRET, algorithms=["HS256"])
    assert claims["sub"] == str(user.id)
    assert claims["role"] == "USER"


def test_login_with_bad_credentials(client, db):
    make_user(db, email="dave@shop.com", password="hunter22")

    for email, password in [("dave@shop.com", "wrong-pass"), ("nobody@shop.com", "hunter22")]:
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"
        assert resp.headers["www-authenticate"] == "Bearer"


def test_expired_token_is_rejected(client, alice):
    token = create_access_token(str(alice.id), alice.role.value, expires_minutes=-1)
    resp = client.get("/orders/mine", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token(str(uuid.uuid4()), "USER")
    resp = client.get("/orders/mine", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token subject no longer exists"


def test_token_with_malformed_subject_is_rejected(client):
    token = create_access_token("not-a-uuid", "USER")
    resp = client.get("/orders/mine", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"


def test_registration_racing_on_the_same_email_is_a_client_error(client, alice, monkeypatch):
    # Simulate a second request whose lookup ran before alice's row was committed
    monkeypatch.setattr(
        "storefront.application.auth_service.UserRepository.find_by_email",
        lambda self, email: None,
    )

    resp = register(client, email="alice@shop.com")

    assert resp.status_code == 400
    assert resp.json()["message"] == "Email is already in use"


def test_admin_role_cannot_be_self_registered(client):
    resp = register(client, role="ADMIN")
    assert resp.status_code == 403
    assert resp.json()["details"] == {"field": "role"}

    resp = client.post("/auth/login", json={"email": "carol@shop.com", "password": "secret123"})
    assert resp.status_code == 401

    assert register(client, role="USER").json()["role"] == "USER"
