"""
Authentication tests: registration, login, token rotation, logout and
account management.
"""

import pytest
from gestao.extensions import db
from gestao.models import Product, User
from gestao.services import auth_service, session_service
from gestao.services.auth_service import PasswordValidationError
from gestao.validation import ConflictError, ValidationError

from conftest import PASSWORD, auth_headers


class TestPasswordRules:

    @pytest.mark.parametrize("password", ["abc1", "abcdefg", "1234567", ""])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_round_trip(self, app):
        hashed = auth_service.hash_password("segredo1")
        assert hashed != "segredo1"
        assert auth_service.verify_password("segredo1", hashed)
        assert not auth_service.verify_password("segredo2", hashed)


class TestRegistration:

    def test_email_is_normalized_and_unique(self, owner):
        with pytest.raises(ConflictError):
            auth_service.register_user(email="  MARIA@Loja.com ", password=PASSWORD, full_name="Outra Maria")

    def test_invalid_email(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.register_user(email="not-an-email", password=PASSWORD, full_name="X")

    def test_register_endpoint_signs_in(self, client, db_session):
        response = client.post('/api/auth/register', json={
            "email": "novo@loja.com",
            "password": "abc123",
            "full_name": "Novo Dono",
            "business_name": "Mercadinho",
        })

        assert response.status_code == 201
        assert response.json["user"]["business_name"] == "Mercadinho"
        assert response.json["token_type"] == "Bearer"
        me = client.get('/api/auth/me', headers=auth_headers(response.json["access_token"]))
        assert me.status_code == 200
        assert me.json["user"]["email"] == "novo@loja.com"

    def test_register_duplicate_is_409(self, client, owner):
        response = client.post('/api/auth/register', json={
            "email": owner.email,
            "password": PASSWORD,
            "full_name": "Copia",
        })
        assert response.status_code == 409

    def test_register_weak_password_is_400(self, client, db_session):
        response = client.post('/api/auth/register', json={
            "email": "fraco@loja.com",
            "password": "abc",
            "full_name": "Fraco",
        })
        assert response.status_code == 400


class TestLoginAndSessions:

    def test_login_success(self, client, owner):
        response = client.post('/api/auth/login', json={"email": owner.email, "password": PASSWORD})

        assert response.status_code == 200
        assert response.json["access_token"]
        assert response.json["refresh_token"]
        assert response.json["user"]["id"] == owner.id

    def test_login_wrong_password(self, client, owner):
        response = client.post('/api/auth/login', json={"email": owner.email, "password": "errada1"})
        assert response.status_code == 401
        assert response.json["error"] == "Invalid credentials"

    def test_login_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={"email": "x@y.com"})
        assert response.status_code == 400

    def test_protected_route_without_token(self, client, db_session):
        response = client.get('/api/products')
        assert response.status_code == 401
        assert response.json["error"] == "Authentication required"

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/products', headers=auth_headers("nope"))
        assert response.status_code == 401

    def test_refresh_rotates_tokens(self, client, owner):
        login = client.post('/api/auth/login', json={"email": owner.email, "password": PASSWORD})
        old_access = login.json["access_token"]
        refresh_token = login.json["refresh_token"]

        refreshed = client.post('/api/auth/refresh', json={"refresh_token": refresh_token})
        assert refreshed.status_code == 200
        new_access = refreshed.json["access_token"]
        assert new_access != old_access

        assert client.get('/api/auth/me', headers=auth_headers(new_access)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(old_access)).status_code == 401

        reused = client.post('/api/auth/refresh', json={"refresh_token": refresh_token})
        assert reused.status_code == 401

    def test_logout_revokes_token(self, client, owner):
        login = client.post('/api/auth/login', json={"email": owner.email, "password": PASSWORD})
        headers = auth_headers(login.json["access_token"])

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401
        assert client.post('/api/auth/logout', headers=headers).status_code == 401

    def test_deactivated_user_is_rejected(self, client, owner):
        issued = session_service.create_session(owner.id)
        owner.is_active = False
        db.session.commit()

        response = client.get('/api/auth/me', headers=auth_headers(issued.access_token))

        assert response.status_code == 401


class TestAccountManagement:

    def test_update_profile(self, client, owner_headers):
        response = client.patch('/api/users/me', json={"business_name": "Empório"}, headers=owner_headers)
        assert response.status_code == 200
        assert response.json["user"]["business_name"] == "Empório"

    def test_update_profile_rejects_email_change(self, client, owner_headers):
        response = client.patch('/api/users/me', json={"email": "outro@loja.com"}, headers=owner_headers)
        assert response.status_code == 400

    def test_delete_account_removes_owned_rows(self, client, owner, owner_headers, make_product, other_owner):
        make_product(name="Meu")
        make_product(name="Deles", user=other_owner)
        owner_id = owner.id

        response = client.delete('/api/users/me', headers=owner_headers)

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(User, owner_id) is None
        assert db.session.query(Product).count() == 1
