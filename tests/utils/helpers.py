from typing import Any

from jose import jwt

from app.auth.models.user import User
from app.auth.routes.auth import issue_token
from app.core.config import settings


def assert_user_response_valid(data: dict[str, Any]) -> None:
    assert "id" in data
    assert "email" in data
    assert "name" in data
    assert "role" in data
    assert "hashedPassword" not in data


def assert_ticket_response_valid(data: dict[str, Any]) -> None:
    for key in ("id", "title", "status", "priority", "category", "createdBy", "createdAt"):
        assert key in data
    assert isinstance(data["id"], str)
    assert isinstance(data["tags"], list)


def create_auth_headers(token: str) -> dict[str, str]:
    """Create Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User) -> str:
    return issue_token(user)


def auth_headers_for(user: User) -> dict[str, str]:
    return create_auth_headers(token_for(user))


def decode_jwt_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
