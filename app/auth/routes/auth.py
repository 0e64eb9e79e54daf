import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.auth.models.user import User
from app.auth.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutResponse,
    MeResponse,
    RegisterRequest,
)
from app.auth.services.user_service import UserService
from app.core import security
from app.core.config import settings
from app.core.datetime_utils import utcnow
from app.core.exceptions import ForbiddenError, UnauthorizedError, ValidationError
from app.core.rate_limit import limiter
from app.db.session import get_db
from app.tickets.services.response_builder import build_user_response

logger = logging.getLogger(__name__)

router = APIRouter()


def issue_token(user: User) -> str:
    return security.create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role, "name": user.name}
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def register(
    request: Request,
    data: RegisterRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    allowed_roles = settings.registration_roles
    if data.role not in allowed_roles:
        raise ValidationError(
            "Invalid role, expected one of: " + ", ".join(allowed_roles), field="role"
        )

    user = UserService(db).create_user(
        email=data.email,
        password=data.password,
        name=data.name,
        role=data.role,
        department=data.department,
        location=data.location,
    )
    logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    return AuthResponse(user=build_user_response(user), token=issue_token(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    user = UserService(db).get_by_email(credentials.email)

    if not user or not security.verify_password(credentials.password, str(user.hashed_password)):
        logger.info("Failed login attempt", extra={"email": credentials.email})
        raise UnauthorizedError("Invalid credentials")

    if not user.is_active:
        raise ForbiddenError("Account is inactive")

    return AuthResponse(user=build_user_response(user), token=issue_token(user))


@router.post("/logout", response_model=LogoutResponse)
def logout(current_user: User = Depends(get_current_user)) -> LogoutResponse:
    # Tokens are stateless; the client discards its copy
    logger.info("User logged out", extra={"user_id": current_user.id})
    return LogoutResponse(timestamp=utcnow())


@router.get("/me", response_model=MeResponse)
def get_me(current_user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=build_user_response(current_user))
