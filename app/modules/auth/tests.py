"""
Tests de autenticación y control de acceso por rol
"""

from datetime import timedelta

import pytest

from app.modules.auth.models import User, UserRole
from app.modules.auth.utils import create_access_token, decode_access_token, hash_password, verify_password


@pytest.fixture
def registered_cashier(db_session):
    user = User(
        name="Laura Caja",
        email="laura@mesa360.co",
        password=hash_password("Caja2024*"),
        role=UserRole.CASHIER,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secreto")
        assert hashed != "secreto"
        assert verify_password("secreto", hashed)
        assert not verify_password("otro", hashed)
        assert not verify_password("secreto", "")

    def test_decode_access_token(self):
        assert decode_access_token(create_access_token({"sub": "7"})) == 7
        assert decode_access_token(create_access_token({"sub": "abc"})) is None
        assert decode_access_token("no-es-un-jwt") is None


# ===== LOGIN =====

class TestLogin:
    def test_login_returns_token(self, client, registered_cashier):
        response = client.post("/auth/login", data={"username": "Laura@Mesa360.co", "password": "Caja2024*"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "cashier"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "laura@mesa360.co"

    def test_wrong_password(self, client, registered_cashier):
        response = client.post("/auth/login", data={"username": "laura@mesa360.co", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Credenciales incorrectas"

    def test_inactive_account(self, client, db_session, registered_cashier):
        registered_cashier.is_active = False
        db_session.commit()
        response = client.post("/auth/login", data={"username": "laura@mesa360.co", "password": "Caja2024*"})
        assert response.status_code == 403


# ===== TOKENS Y ROLES =====

class TestAccessControl:
    def test_missing_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_expired_token(self, client, cashier_user):
        token = create_access_token({"sub": str(cashier_user.id)}, expires_delta=timedelta(minutes=-1))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer no-es-un-jwt"})
        assert response.status_code == 401

    def test_deactivated_user_token_rejected(self, client, db_session, cashier_user, cashier_headers):
        cashier_user.is_active = False
        db_session.commit()
        assert client.get("/auth/me", headers=cashier_headers).status_code == 401

    def test_role_is_read_from_database(self, client, db_session, cashier_user, cashier_headers):
        """Test el rol se resuelve contra la base, no contra el token"""
        assert client.get("/cash-desk/history", headers=cashier_headers).status_code == 403
        cashier_user.role = UserRole.ADMIN
        db_session.commit()
        assert client.get("/cash-desk/history", headers=cashier_headers).status_code == 200

    def test_role_error_message(self, client, customer_headers):
        response = client.get("/cash-desk/current", headers=customer_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Se requiere uno de estos roles: admin, cashier"
