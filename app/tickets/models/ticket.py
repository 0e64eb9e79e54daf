import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.datetime_utils import utcnow
from app.db.session import Base


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_APPROVAL = "pending_approval"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(str, enum.Enum):
    TECHNICAL = "technical"
    BILLING = "billing"
    GENERAL = "general"
    FEATURE_REQUEST = "feature_request"
    BUG_REPORT = "bug_report"


# Most urgent first
PRIORITY_RANK = {
    TicketPriority.URGENT.value: 1,
    TicketPriority.HIGH.value: 2,
    TicketPriority.MEDIUM.value: 3,
    TicketPriority.LOW.value: 4,
}

ACTIVE_STATUSES = (TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value)
FINISHED_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


@dataclass(frozen=True)
class Unassigned:
    pass


@dataclass(frozen=True)
class AssignedToUser:
    user_id: int


@dataclass(frozen=True)
class AssignedToRole:
    role: str


Assignment = Unassigned | AssignedToUser | AssignedToRole


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint(
            "assigned_role IS NULL OR assigned_role IN ('technical', 'assignee')",
            name="ck_tickets_assigned_role",
        ),
        Index("ix_tickets_status_priority", "status", "priority"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(30))
    priority: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(30), default=TicketStatus.OPEN.value, index=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    assigned_role: Mapped[str | None] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(default=None)
    due_date: Mapped[datetime | None] = mapped_column(default=None)
    tags: Mapped[str | None] = mapped_column(Text, default=None)

    creator = relationship("User", foreign_keys=[created_by], lazy="joined")
    assignee = relationship("User", foreign_keys=[assigned_to], lazy="joined")
    comments = relationship(
        "TicketComment",
        back_populates="ticket",
        order_by="TicketComment.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def assignment(self) -> Assignment:
        if self.assigned_to is not None:
            return AssignedToUser(self.assigned_to)
        if self.assigned_role is not None:
            return AssignedToRole(self.assigned_role)
        return Unassigned()

    def assign(self, assignment: Assignment) -> None:
        """Set the assignment columns; a user assignment clears any role hint."""
        if isinstance(assignment, AssignedToUser):
            self.assigned_to = assignment.user_id
            self.assigned_role = None
        elif isinstance(assignment, AssignedToRole):
            self.assigned_to = None
            self.assigned_role = assignment.role
        else:
            self.assigned_to = None
            self.assigned_role = None

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, status={self.status}, created_by={self.created_by})>"
