from datetime import timedelta

import pytest

from app.core.security import create_access_token
from tests.utils.factories import create_user_factory
from tests.utils.helpers import (
    assert_user_response_valid,
    create_auth_headers,
    decode_jwt_token,
)


class TestRegisterEndpoint:
    @pytest.mark.asyncio
    async def test_should_register_user_and_return_token(self, test_client):
        payload = {
            "email": "New.Partner@Example.com",
            "password": "Password123",
            "name": "New Partner",
            "role": "channel_partner",
            "department": "Sales",
            "location": "Poznan",
        }

        response = await test_client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert_user_response_valid(data["user"])
        assert data["user"]["email"] == "new.partner@example.com"
        assert data["user"]["role"] == "channel_partner"
        assert data["user"]["department"] == "Sales"

        claims = decode_jwt_token(data["token"])
        assert claims["sub"] == data["user"]["id"]
        assert claims["role"] == "channel_partner"
        assert claims["type"] == "access"

    @pytest.mark.asyncio
    async def test_should_return_409_when_email_taken(self, test_client, channel_partner):
        payload = {
            "email": channel_partner.email,
            "password": "Password123",
            "name": "Copy",
            "role": "channel_partner",
        }

        response = await test_client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 409
        assert response.json() == {"error": "User with this email already exists"}

    @pytest.mark.asyncio
    async def test_should_return_400_when_role_not_self_registrable(self, test_client):
        payload = {
            "email": "dev@example.org",
            "password": "Password123",
            "name": "Dev",
            "role": "developer_support",
        }

        response = await test_client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 400
        assert "Invalid role" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_should_return_400_when_password_too_short(self, test_client):
        payload = {
            "email": "short@example.com",
            "password": "short",
            "name": "Short",
            "role": "channel_partner",
        }

        response = await test_client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 400
        assert "at least 8 characters" in response.json()["error"]


class TestLoginEndpoint:
    @pytest.mark.asyncio
    async def test_should_login_with_valid_credentials(self, test_client, head_office_user):
        response = await test_client.post(
            "/api/v1/auth/login",
            json={"email": "ADMIN@example.com", "password": "adminpass123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == str(head_office_user.id)
        assert decode_jwt_token(data["token"])["role"] == "head_office"

    @pytest.mark.asyncio
    async def test_should_return_401_when_password_wrong(self, test_client, head_office_user):
        response = await test_client.post(
            "/api/v1/auth/login",
            json={"email": head_office_user.email, "password": "wrongpass123"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_should_return_401_when_user_unknown(self, test_client):
        response = await test_client.post(
            "/api/v1/auth/login",
            json={"email": "ghost@example.com", "password": "whatever123"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_should_return_403_when_account_inactive(self, test_client, db_session):
        create_user_factory(
            db_session, email="inactive@example.com", password="testpass123", is_active=False
        )

        response = await test_client.post(
            "/api/v1/auth/login",
            json={"email": "inactive@example.com", "password": "testpass123"},
        )

        assert response.status_code == 403


class TestMeEndpoint:
    @pytest.mark.asyncio
    async def test_should_return_current_user(self, test_client, technical_user, technical_token):
        response = await test_client.get(
            "/api/v1/auth/me", headers=create_auth_headers(technical_token)
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == str(technical_user.id)
        assert user["role"] == "technical"
        assert user["isActive"] is True

    @pytest.mark.asyncio
    async def test_should_return_401_without_token(self, test_client):
        response = await test_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    @pytest.mark.asyncio
    async def test_should_return_401_for_garbage_token(self, test_client):
        response = await test_client.get(
            "/api/v1/auth/me", headers=create_auth_headers("not-a-jwt")
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_should_return_401_for_expired_token(self, test_client, technical_user):
        token = create_access_token(
            {"sub": str(technical_user.id), "role": technical_user.role},
            expires_delta=timedelta(minutes=-5),
        )

        response = await test_client.get("/api/v1/auth/me", headers=create_auth_headers(token))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_role_comes_from_database_not_token(
        self, test_client, db_session, channel_partner
    ):
        token = create_access_token(
            {"sub": str(channel_partner.id), "role": "head_office"}
        )

        response = await test_client.get("/api/v1/users", headers=create_auth_headers(token))

        assert response.status_code == 403


class TestLogoutEndpoint:
    @pytest.mark.asyncio
    async def test_should_acknowledge_logout(self, test_client, partner_token):
        response = await test_client.post(
            "/api/v1/auth/logout", headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "timestamp" in data
