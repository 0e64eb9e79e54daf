import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from app.core.datetime_utils import utcnow
from app.db.session import Base


class UserRole(str, enum.Enum):
    CHANNEL_PARTNER = "channel_partner"
    ASSIGNEE = "assignee"
    HEAD_OFFICE = "head_office"
    TECHNICAL = "technical"
    DEVELOPER_SUPPORT = "developer_support"


USER_ROLE_VALUES = tuple(role.value for role in UserRole)


class User(Base):
    """
    User account for authentication and role-based authorization.

    Attributes:
        id: Integer primary key (exposed to clients as a string)
        email: Unique email address (indexed for fast lookups)
        hashed_password: Argon2 hashed password
        name: Display name
        role: One of UserRole; decides ticket visibility and capabilities
        department: Optional organisational unit
        location: Optional office or city
        is_active: Deactivated users cannot authenticate
        created_at: Account creation timestamp
        updated_at: Last update timestamp, null until the first update
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('channel_partner', 'assignee', 'head_office', 'technical', "
            "'developer_support')",
            name="ck_users_role",
        ),
    )

    # Primary fields
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    role = Column(String(50), nullable=False, default=UserRole.CHANNEL_PARTNER.value)
    department = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
