from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.models.user import User, UserRole
from app.tickets.models.ticket import ACTIVE_STATUSES, Ticket
from app.tickets.policy import ASSIGNABLE_ROLES, ROLE_ASSIGNMENT_TARGETS
from app.tickets.schemas.assignee import AssigneeOption
from app.tickets.services.query_builder import count_if

ROLE_TARGET_LABELS = {
    UserRole.TECHNICAL.value: ("Technical Support", "Technical Support"),
    UserRole.ASSIGNEE.value: ("Assignee", "Support"),
}


class AssigneeService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_options(self, claims: SessionClaims) -> list[AssigneeOption]:
        """Channel partners pick a role; everyone else picks an eligible user."""
        if claims.role == UserRole.CHANNEL_PARTNER.value:
            return self.role_options()
        return self.user_options()

    @staticmethod
    def role_options() -> list[AssigneeOption]:
        options = []
        for role in ROLE_ASSIGNMENT_TARGETS:
            name, department = ROLE_TARGET_LABELS[role]
            options.append(
                AssigneeOption(
                    id=role, name=name, role=role, department=department, is_role_based=True
                )
            )
        return options

    def user_options(self) -> list[AssigneeOption]:
        assigned = (
            select(func.count(Ticket.id))
            .where(Ticket.assigned_to == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        active = (
            select(count_if(Ticket.status.in_(ACTIVE_STATUSES)))
            .where(Ticket.assigned_to == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        rows = (
            self.db.query(User, assigned, active)
            .filter(User.role.in_(sorted(ASSIGNABLE_ROLES)), User.is_active.is_(True))
            .order_by(User.name.asc(), User.id.asc())
            .all()
        )
        return [
            AssigneeOption(
                id=str(user.id),
                name=user.name,
                email=user.email,
                role=user.role,
                department=user.department,
                location=user.location,
                assigned_tickets=int(n_assigned or 0),
                active_tickets=int(n_active or 0),
            )
            for user, n_assigned, n_active in rows
        ]
