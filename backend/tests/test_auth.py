import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from conftest import PASSWORD, signup
from fastapi import WebSocketDisconnect, status
from jose import jwt

from bloodconnect.database import settings
from bloodconnect.utils.security import create_access_token


def test_register_returns_account_without_password(client):
    response = client.post(
        "/auth/register", json={"email": "New@Example.com", "password": PASSWORD, "role": "donor"}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["role"] == "donor"
    assert body["profile_completed"] is False
    assert "password" not in body


def test_same_role_duplicate_is_rejected(client):
    signup(client, "dup@example.com", "donor")
    response = client.post("/auth/register", json={"email": "dup@example.com", "password": PASSWORD, "role": "donor"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_email_cannot_hold_both_roles(client):
    signup(client, "shared@example.com", "hospital")
    response = client.post(
        "/auth/register", json={"email": "shared@example.com", "password": PASSWORD, "role": "donor"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == (
        "This email is already registered as a hospital. "
        "Please use a different email or login to hospital portal."
    )


def test_short_password_is_rejected(client):
    response = client.post("/auth/register", json={"email": "a@example.com", "password": "123", "role": "donor"})
    assert response.status_code == 422


def test_login_routes_to_profile_setup_then_dashboard(client):
    headers, _ = signup(client, "route@example.com", "donor")
    login = client.post("/auth/login", data={"username": "route@example.com", "password": PASSWORD, "role": "donor"})
    assert login.json()["redirect"] == "/donor/profile-setup"

    from conftest import donor_profile

    client.put("/donors/me/profile", json=donor_profile(), headers=headers)
    login = client.post("/auth/login", data={"username": "route@example.com", "password": PASSWORD, "role": "donor"})
    assert login.json()["redirect"] == "/donor/dashboard"
    assert login.json()["user"]["profile_completed"] is True


def test_login_with_wrong_password(client):
    signup(client, "pw@example.com", "hospital")
    response = client.post("/auth/login", data={"username": "pw@example.com", "password": "nope-nope", "role": "hospital"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"


def test_login_through_the_wrong_portal(client):
    signup(client, "portal@example.com", "hospital")
    response = client.post("/auth/login", data={"username": "portal@example.com", "password": PASSWORD, "role": "donor"})
    assert response.status_code == 401
    assert response.json()["detail"] == (
        "This account is not registered as a donor. Please sign up as a donor or login to hospital portal."
    )


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    headers, user_id = signup(client, "me@example.com", "donor")
    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["_id"] == user_id


def test_garbage_token_is_rejected(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_expired_token_is_rejected(client):
    _, user_id = signup(client, "late@example.com", "donor")
    token = create_access_token(user_id, "donor", expires_delta=timedelta(minutes=-1))
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


def test_token_for_other_role_is_rejected(client):
    _, user_id = signup(client, "role@example.com", "donor")
    token = create_access_token(user_id, "hospital")
    response = client.get("/hospitals/me/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token role does not match account"


def test_token_without_role_claim_is_rejected(client):
    _, user_id = signup(client, "norole@example.com", "donor")
    claims = {"sub": user_id, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token payload"


def test_token_for_deleted_account_is_rejected(client, mock_db):
    headers, user_id = signup(client, "gone@example.com", "hospital")
    asyncio.run(mock_db.get_collection("accounts").delete_one({"_id": ObjectId(user_id)}))
    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["detail"] == "Account no longer exists"


@pytest.mark.parametrize("path", ["/ws/updates", "/ws/updates?token=not-a-token"])
def test_live_updates_socket_requires_valid_token(client, path):
    with pytest.raises(WebSocketDisconnect) as closed:
        with client.websocket_connect(path):
            pass
    assert closed.value.code == status.WS_1008_POLICY_VIOLATION
