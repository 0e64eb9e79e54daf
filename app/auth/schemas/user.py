from pydantic import EmailStr, Field, field_validator

from app.auth.models.user import UserRole
from app.core.config import settings
from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel, GroupCount, PaginationMeta


def _check_password_length(value: str) -> str:
    if len(value) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    return value


class UserResponse(CamelModel):
    id: str
    email: str
    name: str
    role: str
    department: str | None = None
    location: str | None = None
    is_active: bool
    created_at: UTCDatetime | None = None
    updated_at: UTCDatetime | None = None


class UserSummary(CamelModel):
    """Compact user reference embedded in tickets and comments."""

    id: str
    name: str
    email: str | None = None
    role: str | None = None
    department: str | None = None


class UserCreate(CamelModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole
    department: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_length(v)


class UserUpdate(CamelModel):
    email: EmailStr | None = None
    password: str | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    role: UserRole | None = None
    department: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)
    is_active: bool | None = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str | None:
        return None if v is None else _check_password_length(v)


class UserTicketCounts(CamelModel):
    tickets_created: int = 0
    tickets_assigned: int = 0
    tickets_resolved: int = 0
    tickets_closed: int = 0


class UserWithStats(UserResponse):
    stats: UserTicketCounts


class UserListResponse(CamelModel):
    users: list[UserWithStats]
    count: int
    role_stats: list[GroupCount]
    department_stats: list[GroupCount]
    location_stats: list[GroupCount]


class UserMutationResponse(CamelModel):
    success: bool = True
    message: str
    user: UserResponse


class UserSearchItem(UserResponse):
    ticket_count: int = 0
    active_tickets: int = 0


class UserSearchResponse(CamelModel):
    success: bool = True
    users: list[UserSearchItem]
    pagination: PaginationMeta
