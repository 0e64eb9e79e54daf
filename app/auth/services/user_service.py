from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.auth.models.user import User
from app.auth.schemas.user import (
    UserCreate,
    UserListResponse,
    UserTicketCounts,
    UserUpdate,
    UserWithStats,
)
from app.core import security
from app.core.datetime_utils import utcnow
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.schemas import GroupCount
from app.db.session import transaction
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import Ticket, TicketStatus
from app.tickets.policy import ASSIGNABLE_ROLES
from app.tickets.services.response_builder import build_group_counts, build_user_response

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_user(self, user_id: int) -> User:
        user: User | None = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User not found", resource="user")
        return user

    def get_by_email(self, email: str) -> User | None:
        user: User | None = (
            self.db.query(User).filter(User.email == normalize_email(email)).first()
        )
        return user

    def create_user(
        self,
        *,
        email: str,
        password: str,
        name: str,
        role: str,
        department: str | None = None,
        location: str | None = None,
        actor_id: int | None = None,
    ) -> User:
        if self.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists", resource="user")

        user = User(
            email=normalize_email(email),
            hashed_password=security.get_password_hash(password),
            name=name.strip(),
            role=role,
            department=department,
            location=location,
            is_active=True,
        )
        with transaction(self.db):
            self.db.add(user)
        self.db.refresh(user)

        logger.info("user_created", user_id=user.id, role=user.role, actor_id=actor_id)
        return user

    def create_from_request(self, data: UserCreate, actor_id: int) -> User:
        return self.create_user(
            email=data.email,
            password=data.password,
            name=data.name,
            role=data.role.value,
            department=data.department,
            location=data.location,
            actor_id=actor_id,
        )

    def list_users(
        self,
        role: str | None = None,
        department: str | None = None,
        location: str | None = None,
    ) -> UserListResponse:
        # Correlated scalar subqueries to avoid cartesian products
        created_count = (
            select(func.count(Ticket.id))
            .where(Ticket.created_by == User.id)
            .correlate(User)
            .scalar_subquery()
            .label("tickets_created")
        )
        assigned_count = (
            select(func.count(Ticket.id))
            .where(Ticket.assigned_to == User.id)
            .correlate(User)
            .scalar_subquery()
            .label("tickets_assigned")
        )
        resolved_count = (
            select(func.count(Ticket.id))
            .where(Ticket.assigned_to == User.id, Ticket.status == TicketStatus.RESOLVED.value)
            .correlate(User)
            .scalar_subquery()
            .label("tickets_resolved")
        )
        closed_count = (
            select(func.count(Ticket.id))
            .where(Ticket.assigned_to == User.id, Ticket.status == TicketStatus.CLOSED.value)
            .correlate(User)
            .scalar_subquery()
            .label("tickets_closed")
        )

        clauses = []
        if role:
            clauses.append(User.role == role)
        if department:
            clauses.append(User.department == department)
        if location:
            clauses.append(User.location == location)

        rows = (
            self.db.query(User, created_count, assigned_count, resolved_count, closed_count)
            .filter(*clauses)
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )
        users = [
            UserWithStats(
                **build_user_response(user).model_dump(),
                stats=UserTicketCounts(
                    tickets_created=created or 0,
                    tickets_assigned=assigned or 0,
                    tickets_resolved=resolved or 0,
                    tickets_closed=closed or 0,
                ),
            )
            for user, created, assigned, resolved, closed in rows
        ]

        return UserListResponse(
            users=users,
            count=len(users),
            role_stats=self._group_counts(User.role),
            department_stats=self._group_counts(User.department),
            location_stats=self._group_counts(User.location),
        )

    def _group_counts(self, column: Any) -> list[GroupCount]:
        rows = (
            self.db.query(column, func.count(User.id))
            .group_by(column)
            .order_by(func.count(User.id).desc(), column)
            .all()
        )
        return build_group_counts(rows)

    def update_user(self, user_id: int, data: UserUpdate, actor_id: int) -> User:
        user = self.get_user(user_id)
        provided = data.model_dump(exclude_unset=True)
        changes: dict[str, object] = {}

        if provided.get("email") is not None:
            email = normalize_email(provided["email"])
            taken = self.db.query(User.id).filter(User.email == email, User.id != user.id).first()
            if taken is not None:
                raise ConflictError("Email is already taken by another user", resource="user")
            changes["email"] = email
        if provided.get("name") is not None:
            changes["name"] = provided["name"].strip()
        if provided.get("role") is not None:
            changes["role"] = provided["role"].value
            if changes["role"] not in ASSIGNABLE_ROLES:
                self._ensure_no_assigned_tickets(user, changes["role"])
        if provided.get("password") is not None:
            changes["hashed_password"] = security.get_password_hash(provided["password"])
        if provided.get("is_active") is not None:
            changes["is_active"] = provided["is_active"]
        for field in ("department", "location"):
            if field in provided:
                changes[field] = provided[field]

        if not changes:
            raise ValidationError("No fields to update")

        with transaction(self.db):
            for field, value in changes.items():
                setattr(user, field, value)
            user.updated_at = utcnow()
        self.db.refresh(user)

        logger.info(
            "user_updated",
            user_id=user.id,
            actor_id=actor_id,
            fields=sorted(k for k in changes if k != "hashed_password"),
        )
        return user

    def _ensure_no_assigned_tickets(self, user: User, new_role: str) -> None:
        n_assigned = (
            self.db.query(func.count(Ticket.id)).filter(Ticket.assigned_to == user.id).scalar() or 0
        )
        if n_assigned:
            raise ValidationError(
                f"Cannot change role to {new_role}. User has {n_assigned} tickets assigned "
                "to them. Please reassign these tickets first.",
                field="role",
            )

    def delete_user(self, user_id: int, actor_id: int) -> None:
        """Delete a user that nothing references.

        Raises:
            ValidationError: The user still has assigned or created tickets,
                or authored comments; the message says which.
        """
        user = self.get_user(user_id)
        if user.id == actor_id:
            raise ValidationError("You cannot delete your own account")

        assigned = self.db.query(func.count(Ticket.id)).filter(Ticket.assigned_to == user.id)
        n_assigned = assigned.scalar() or 0
        if n_assigned:
            raise ValidationError(
                f"Cannot delete user. User has {n_assigned} tickets assigned to them. "
                "Please reassign or close these tickets first."
            )

        created = self.db.query(func.count(Ticket.id)).filter(Ticket.created_by == user.id)
        n_created = created.scalar() or 0
        if n_created:
            raise ValidationError(
                f"Cannot delete user. User has created {n_created} tickets. "
                "Consider deactivating the account instead."
            )

        comments = self.db.query(func.count(TicketComment.id))
        n_comments = comments.filter(TicketComment.user_id == user.id).scalar() or 0
        if n_comments:
            raise ValidationError(
                f"Cannot delete user. User has authored {n_comments} comments. "
                "Consider deactivating the account instead."
            )

        with transaction(self.db):
            self.db.delete(user)
        logger.info("user_deleted", user_id=user_id, actor_id=actor_id)
