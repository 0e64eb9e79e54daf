from pydantic import EmailStr, Field, field_validator

from app.auth.schemas.user import UserResponse, _check_password_length
from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel


class RegisterRequest(CamelModel):
    """Self-registration payload"""

    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=255)
    role: str
    department: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_length(v)


class LoginRequest(CamelModel):
    """Login request schema"""

    email: EmailStr
    password: str


class AuthResponse(CamelModel):
    """Returned after register and login; the token goes in the Authorization header."""

    user: UserResponse
    token: str


class MeResponse(CamelModel):
    user: UserResponse


class LogoutResponse(CamelModel):
    """Response schema for logout"""

    success: bool = True
    message: str = "Logged out successfully"
    timestamp: UTCDatetime
