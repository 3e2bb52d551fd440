# se cubren login, registro, logout y protección de endpoints
import logging
import uuid

from fastapi.testclient import TestClient

from school_portal.core.config import settings
from school_portal.db.models import UserRole


# Tests para el endpoint de login de autenticación (verifica login exitoso)
def test_admin_login_success(client: TestClient):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": settings.BUILTIN_ADMIN_EMAIL, "password": settings.BUILTIN_ADMIN_PASSWORD},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


def test_login_fail_wrong_password(client: TestClient):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": settings.BUILTIN_ADMIN_EMAIL, "password": "wrong"},
    )
    assert resp.status_code == 401


#Test para verificar que el registro abierto siempre crea alumnos
def test_register_creates_student(client: TestClient):
    payload = {
        "email": f"new_student_{uuid.uuid4().hex[:6]}@example.com",
        "password": "Password123!",
        "full_name": "New Student",
        "student_code": "S-2001",
        "class_name": "9-B",
        "role": "admin",  # se ignora
    }
    resp = client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["role"] == UserRole.STUDENT.value
    assert data["class_name"] == "9-B"


#Test para verificar que no puedes registrar dos usuarios con el mismo email
def test_register_duplicate_email_fails(client: TestClient):
    payload = {
        "email": f"dup_{uuid.uuid4().hex[:6]}@example.com",
        "password": "Password123!",
        "full_name": "User Dup",
    }

    resp1 = client.post("/api/v1/auth/register", json=payload)
    assert resp1.status_code == 201, resp1.text

    resp2 = client.post("/api/v1/auth/register", json=payload)
    assert resp2.status_code == 400, resp2.text


#Test para verificar formato de e mail
def test_register_invalid_email_fails(client: TestClient):
    payload = {
        "email": "correo-invalido",
        "password": "pass123",
        "full_name": "User Invalid",
    }

    resp = client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 422


def test_login_unregistered_email_fails(client: TestClient):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": "no_existe@example.com", "password": "pass123"},
    )
    assert resp.status_code == 401


#usuario bloqueado no puede usar su token
def test_blocked_user_is_rejected(client: TestClient, make_user):
    user = make_user(UserRole.STUDENT, is_blocked=True)

    resp = client.post(
        "/api/v1/auth/login",
        data={"username": user.email, "password": "secret123"},
    )
    assert resp.status_code == 200, resp.text
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    resp = client.get("/api/v1/books/", headers=headers)
    assert resp.status_code == 403


# LOGOUT

def test_logout_with_valid_token_succeeds(client: TestClient, student_headers):
    resp = client.post("/api/v1/auth/logout", headers=student_headers)
    assert resp.status_code == 204

    # El mismo token ya no funciona
    resp2 = client.get("/api/v1/books/", headers=student_headers)
    assert resp2.status_code == 401


def test_logout_without_token_fails(client: TestClient):
    resp = client.post("/api/v1/auth/logout")
    assert resp.status_code == 401


# PROTECCION DE ENDPOINTS

def test_access_protected_endpoint_without_token_returns_401(client: TestClient):
    resp = client.get("/api/v1/books/")
    assert resp.status_code == 401


def test_access_protected_endpoint_with_invalid_token_returns_401(client: TestClient):
    invalid_headers = {"Authorization": "Bearer INVALIDTOKEN123"}

    resp = client.get("/api/v1/books/", headers=invalid_headers)
    assert resp.status_code == 401


# LOGGING

def test_auth_logging_login_success(client: TestClient, caplog):
    caplog.set_level(logging.INFO)
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": settings.BUILTIN_ADMIN_EMAIL, "password": settings.BUILTIN_ADMIN_PASSWORD},
    )
    assert resp.status_code == 200

    assert any("login_success" in rec.getMessage() for rec in caplog.records)


def test_auth_logging_login_failure(client: TestClient, caplog):
    caplog.set_level(logging.WARNING)
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": settings.BUILTIN_ADMIN_EMAIL, "password": "wrong"},
    )
    assert resp.status_code == 401

    failures = [rec for rec in caplog.records if rec.getMessage() == "login_failed"]
    assert failures
    assert failures[0].operation == "auth_login"
