from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.models.user import User
from app.core import security
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.db.session import get_db
from app.tickets.policy import Capability, require_capability_for


bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Extract the bearer token from the Authorization header"""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required")
    return credentials.credentials


def get_validated_token_payload(token: str, expected_type: str = "access") -> dict[str, Any]:
    """Decode and validate JWT token"""
    payload = security.decode_token(token)

    if payload is None:
        raise UnauthorizedError("Invalid or expired token")

    if payload.get("type") != expected_type:
        raise UnauthorizedError(f"Invalid token type, expected {expected_type}")

    return payload


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user from access token"""
    payload = get_validated_token_payload(token, expected_type="access")

    subject = payload.get("sub")
    try:
        user_id = int(subject) if subject is not None else None
    except (TypeError, ValueError):
        user_id = None
    if user_id is None:
        raise UnauthorizedError("Invalid or expired token")

    user: User | None = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UnauthorizedError("User not found")

    if not user.is_active:
        raise ForbiddenError("Account is inactive")

    return user


def get_session_claims(current_user: User = Depends(get_current_user)) -> SessionClaims:
    return SessionClaims.from_user(current_user)


def require_capability(capability: Capability) -> Callable[..., SessionClaims]:
    """Dependency factory gating a route on a role capability."""

    def dependency(claims: SessionClaims = Depends(get_session_claims)) -> SessionClaims:
        require_capability_for(claims, capability)
        return claims

    return dependency
