from dataclasses import dataclass

from app.auth.models.user import User


@dataclass(frozen=True)
class SessionClaims:
    """Identity of the caller for the duration of one request.

    Built from the database row, never from token contents alone, so a role
    change takes effect on the next request.
    """

    user_id: int
    role: str
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "SessionClaims":
        return cls(user_id=user.id, role=user.role, name=user.name, email=user.email)
