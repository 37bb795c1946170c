"""
Tests for authentication endpoints.
"""
from haulbook.core.security import create_access_token, decode_access_token
from haulbook.models.audit_log import AuditAction, AuditLog


def test_signup(client):
    """Test user signup."""
    response = client.post(
        "/api/auth/signup",
        json={
            "username": "testuser",
            "email": "test@example.com",
            "password": "testpassword123"
        }
    )
    assert response.status_code == 201
    body = response.json()
    assert body["ok"] is True
    assert body["data"]["username"] == "testuser"
    assert "hashed_password" not in body["data"]


def test_signup_duplicate_username(client):
    payload = {"username": "testuser", "email": "test@example.com", "password": "testpassword123"}
    client.post("/api/auth/signup", json=payload)

    response = client.post("/api/auth/signup", json={**payload, "email": "other@example.com"})
    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_login(client, db):
    """Test user login."""
    client.post(
        "/api/auth/signup",
        json={
            "username": "testuser2",
            "email": "test2@example.com",
            "password": "testpassword123"
        }
    )

    response = client.post(
        "/api/auth/login",
        json={
            "username": "testuser2",
            "password": "testpassword123"
        }
    )
    assert response.status_code == 200
    token = response.json()["data"]["access_token"]
    assert decode_access_token(token)["sub"] == "testuser2"
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.LOGIN).count() == 1


def test_login_invalid_credentials(client):
    """Test login with invalid credentials."""
    response = client.post(
        "/api/auth/login",
        json={
            "username": "nonexistent",
            "password": "wrongpassword"
        }
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_business_routes_require_token(client):
    response = client.get("/api/drivers")
    assert response.status_code == 401
    assert response.json() == {
        "ok": False,
        "error": {"code": "UNAUTHORIZED", "message": "Not authenticated"},
    }


def test_invalid_token_rejected(client):
    client.headers.update({"Authorization": "Bearer not-a-token"})
    assert client.get("/api/users/me").status_code == 401


def test_token_for_deleted_user_rejected(client):
    client.headers.update({"Authorization": f"Bearer {create_access_token(999, 'ghost')}"})
    assert client.get("/api/users/me").status_code == 401


def test_me(auth_client):
    response = auth_client.get("/api/users/me")
    assert response.status_code == 200
    assert response.json()["data"]["username"] == "dispatcher"


def test_unknown_route_uses_error_envelope(auth_client):
    response = auth_client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
