from datetime import datetime

import structlog
from sqlalchemy import and_, func, or_, true
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.auth.claims import SessionClaims
from app.auth.models.user import User, UserRole
from app.core.datetime_utils import parse_datetime, utcnow
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.db.session import transaction
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import (
    AssignedToRole,
    AssignedToUser,
    Assignment,
    Ticket,
    TicketPriority,
    TicketStatus,
    Unassigned,
)
from app.tickets.policy import (
    ASSIGNABLE_ROLES,
    ROLE_ASSIGNMENT_TARGETS,
    Capability,
    TicketAction,
    authorize_ticket_action,
    has_capability,
    sees_all_tickets,
)
from app.tickets.schemas.comment import CommentCreate
from app.tickets.schemas.filter import TicketFilter
from app.tickets.schemas.ticket import (
    MyTicketStats,
    TicketCreate,
    TicketUpdate,
    TransferRequest,
)
from app.tickets.services.query_builder import (
    TicketQueryBuilder,
    count_if,
    priority_weight,
    scope_clause,
)
from app.tickets.services.response_builder import join_tags

logger = structlog.get_logger(__name__)

MY_TICKET_TYPES = ("created", "assigned", "available", "all")


def parse_due_date(value: str | None) -> datetime | None:
    if value is None or not value.strip():
        return None
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise ValidationError("Invalid due date format", field="dueDate") from exc


def _open_and_unassigned() -> ColumnElement[bool]:
    return and_(Ticket.status == TicketStatus.OPEN.value, Ticket.assigned_to.is_(None))


class TicketService:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_ticket(self, ticket_id: int) -> Ticket:
        ticket: Ticket | None = self.db.query(Ticket).filter(Ticket.id == ticket_id).first()
        if not ticket:
            raise NotFoundError("Ticket not found", resource="ticket")
        return ticket

    def get_authorized_ticket(
        self, claims: SessionClaims, ticket_id: int, action: TicketAction
    ) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        authorize_ticket_action(claims, action, ticket)
        return ticket

    def get_eligible_assignee(self, raw_user_id: str | int) -> User:
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid assignee id", field="assignedTo") from exc

        user: User | None = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            raise ValidationError("Assignee not found", field="assignedTo")
        if user.role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "Tickets can only be assigned to users with role: "
                + ", ".join(sorted(ASSIGNABLE_ROLES)),
                field="assignedTo",
            )
        return user

    def resolve_assignment(
        self,
        claims: SessionClaims,
        assigned_to: str | int | None,
        assigned_role: str | None,
        *,
        on_create: bool,
    ) -> Assignment:
        """Turn the request's assignment fields into an Assignment, validating eligibility."""
        if isinstance(assigned_to, str):
            assigned_to = assigned_to.strip() or None
            if assigned_role is None and assigned_to in ROLE_ASSIGNMENT_TARGETS:
                assigned_role, assigned_to = assigned_to, None

        if assigned_role:
            if assigned_to is not None:
                raise ValidationError("Assign a ticket to either a user or a role, not both")
            if assigned_role not in ROLE_ASSIGNMENT_TARGETS:
                raise ValidationError(
                    "Invalid assigned role, expected one of: " + ", ".join(ROLE_ASSIGNMENT_TARGETS),
                    field="assignedRole",
                )
            return AssignedToRole(assigned_role)

        if assigned_to is None:
            return Unassigned()

        if claims.role == UserRole.CHANNEL_PARTNER.value:
            raise ValidationError(
                "Channel partners can only assign tickets to a role: "
                + ", ".join(ROLE_ASSIGNMENT_TARGETS),
                field="assignedTo",
            )
        if on_create and not has_capability(claims.role, Capability.ASSIGN_TICKETS):
            raise ForbiddenError("You cannot assign tickets to specific users")

        return AssignedToUser(self.get_eligible_assignee(assigned_to).id)

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def list_tickets(
        self, claims: SessionClaims, filters: TicketFilter
    ) -> tuple[list[Ticket], int]:
        return TicketQueryBuilder(claims, filters).page(self.db)

    def create_ticket(self, claims: SessionClaims, data: TicketCreate) -> Ticket:
        assignment = self.resolve_assignment(
            claims, data.assigned_to, data.assigned_role, on_create=True
        )
        due_date = parse_due_date(data.due_date)

        ticket = Ticket(
            title=data.title,
            description=data.description,
            category=data.category.value,
            priority=data.priority.value,
            status=TicketStatus.OPEN.value,
            created_by=claims.user_id,
            due_date=due_date,
            tags=join_tags(data.tags),
        )
        ticket.assign(assignment)

        with transaction(self.db):
            self.db.add(ticket)
        self.db.refresh(ticket)

        logger.info(
            "ticket_created",
            ticket_id=ticket.id,
            actor_id=claims.user_id,
            assignment=type(assignment).__name__,
        )
        return ticket

    def update_ticket(self, claims: SessionClaims, ticket_id: int, data: TicketUpdate) -> Ticket:
        ticket = self.get_authorized_ticket(claims, ticket_id, TicketAction.EDIT)

        provided = data.model_dump(exclude_unset=True)
        changes: dict[str, object] = {}

        for field in ("title", "description"):
            if provided.get(field) is not None:
                value = provided[field].strip()
                if not value:
                    raise ValidationError(f"{field.capitalize()} must not be blank", field=field)
                changes[field] = value
        for field in ("category", "priority", "status"):
            if provided.get(field) is not None:
                changes[field] = provided[field].value

        if "assigned_to" in provided or "assigned_role" in provided:
            assignment = self.resolve_assignment(
                claims, data.assigned_to, data.assigned_role, on_create=False
            )
            changes["assignment"] = assignment
        if "due_date" in provided:
            changes["due_date"] = parse_due_date(data.due_date)
        if "tags" in provided:
            changes["tags"] = join_tags(data.tags)

        if not changes:
            raise ValidationError("No fields to update")

        previous_status = ticket.status
        with transaction(self.db):
            for field, value in changes.items():
                if field == "assignment":
                    ticket.assign(value)  # type: ignore[arg-type]
                else:
                    setattr(ticket, field, value)
            ticket.updated_at = utcnow()
        self.db.refresh(ticket)

        logger.info(
            "ticket_updated", ticket_id=ticket.id, actor_id=claims.user_id, fields=sorted(changes)
        )
        self._log_status_change(ticket, previous_status, claims)
        return ticket

    def delete_ticket(self, claims: SessionClaims, ticket_id: int) -> None:
        ticket = self.get_authorized_ticket(claims, ticket_id, TicketAction.DELETE)
        with transaction(self.db):
            self.db.delete(ticket)
        logger.info("ticket_deleted", ticket_id=ticket_id, actor_id=claims.user_id)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get_ticket_detail(
        self, claims: SessionClaims, ticket_id: int
    ) -> tuple[Ticket, list[TicketComment]]:
        ticket = self.get_authorized_ticket(claims, ticket_id, TicketAction.VIEW)
        return ticket, self._comments_for(ticket_id)

    def list_comments(self, claims: SessionClaims, ticket_id: int) -> list[TicketComment]:
        self.get_authorized_ticket(claims, ticket_id, TicketAction.COMMENT)
        return self._comments_for(ticket_id)

    def _comments_for(self, ticket_id: int) -> list[TicketComment]:
        comments: list[TicketComment] = (
            self.db.query(TicketComment)
            .filter(TicketComment.ticket_id == ticket_id)
            .order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
            .all()
        )
        return comments

    def add_comment(
        self, claims: SessionClaims, ticket_id: int, data: CommentCreate
    ) -> TicketComment:
        ticket = self.get_authorized_ticket(claims, ticket_id, TicketAction.COMMENT)

        comment = TicketComment(
            ticket_id=ticket.id,
            user_id=claims.user_id,
            content=data.content,
            is_internal=data.is_internal,
        )
        with transaction(self.db):
            self.db.add(comment)
            ticket.updated_at = utcnow()
        self.db.refresh(comment)
        return comment

    # ------------------------------------------------------------------
    # Assignment workflows
    # ------------------------------------------------------------------

    def transfer_ticket(
        self, claims: SessionClaims, data: TransferRequest
    ) -> tuple[Ticket, User]:
        ticket = self.get_authorized_ticket(claims, data.ticket_id, TicketAction.TRANSFER)
        assignee = self.get_eligible_assignee(data.assignee_id)

        previous_assignee = ticket.assignee
        previous_status = ticket.status
        note = self._transfer_note(previous_assignee, assignee, claims, data.reason)

        with transaction(self.db):
            ticket.assign(AssignedToUser(assignee.id))
            if ticket.status == TicketStatus.OPEN.value:
                ticket.status = TicketStatus.IN_PROGRESS.value
            ticket.updated_at = utcnow()
            self.db.add(
                TicketComment(
                    ticket_id=ticket.id, user_id=claims.user_id, content=note, is_internal=True
                )
            )
        self.db.refresh(ticket)

        logger.info(
            "ticket_transferred",
            ticket_id=ticket.id,
            actor_id=claims.user_id,
            from_user_id=previous_assignee.id if previous_assignee else None,
            to_user_id=assignee.id,
        )
        self._log_status_change(ticket, previous_status, claims)
        return ticket, assignee

    def transfer_history(self, claims: SessionClaims, ticket_id: int) -> list[TicketComment]:
        self.get_authorized_ticket(claims, ticket_id, TicketAction.VIEW)
        history: list[TicketComment] = (
            self.db.query(TicketComment)
            .filter(TicketComment.ticket_id == ticket_id, TicketComment.is_internal.is_(True))
            .order_by(TicketComment.created_at.desc(), TicketComment.id.desc())
            .all()
        )
        return history

    def take_ticket(self, claims: SessionClaims, ticket_id: int) -> Ticket:
        """Self-assign an open, unassigned ticket.

        The UPDATE only matches while the ticket is still open and unassigned,
        so of two concurrent takers exactly one gets a row back; the other
        receives a ConflictError.
        """
        ticket = self.get_ticket(ticket_id)
        if ticket.status != TicketStatus.OPEN.value or ticket.assigned_to is not None:
            raise ConflictError("Ticket is no longer available", resource="ticket")
        authorize_ticket_action(claims, TicketAction.VIEW, ticket)
        if ticket.assigned_role and claims.role not in (
            ticket.assigned_role,
            UserRole.HEAD_OFFICE.value,
        ):
            raise ForbiddenError(f"This ticket is reserved for the {ticket.assigned_role} team")

        now = utcnow()
        with transaction(self.db):
            taken = (
                self.db.query(Ticket)
                .filter(
                    Ticket.id == ticket_id,
                    Ticket.status == TicketStatus.OPEN.value,
                    Ticket.assigned_to.is_(None),
                )
                .update(
                    {
                        Ticket.assigned_to: claims.user_id,
                        Ticket.assigned_role: None,
                        Ticket.status: TicketStatus.IN_PROGRESS.value,
                        Ticket.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if taken:
                self.db.add(
                    TicketComment(
                        ticket_id=ticket_id,
                        user_id=claims.user_id,
                        content=f"Ticket taken by {claims.name}.",
                        is_internal=True,
                    )
                )

        if not taken:
            logger.info("ticket_take_conflict", ticket_id=ticket_id, actor_id=claims.user_id)
            raise ConflictError("Ticket is no longer available", resource="ticket")

        self.db.refresh(ticket)
        logger.info("ticket_taken", ticket_id=ticket_id, actor_id=claims.user_id)
        self._log_status_change(ticket, TicketStatus.OPEN.value, claims)
        return ticket

    # ------------------------------------------------------------------
    # My tickets
    # ------------------------------------------------------------------

    def my_tickets_clause(self, claims: SessionClaims, ticket_type: str) -> ColumnElement[bool]:
        uid = claims.user_id
        if claims.role == UserRole.CHANNEL_PARTNER.value:
            return Ticket.created_by == uid

        if sees_all_tickets(claims.role):
            if ticket_type == "created":
                return Ticket.created_by == uid
            if ticket_type == "assigned":
                return Ticket.assigned_to == uid
            if ticket_type == "available":
                return _open_and_unassigned()
            return true()

        if ticket_type == "assigned":
            return Ticket.assigned_to == uid
        if ticket_type == "available":
            return _open_and_unassigned()
        if ticket_type == "created":
            return Ticket.created_by == uid
        return or_(Ticket.assigned_to == uid, _open_and_unassigned())

    def get_my_tickets(
        self, claims: SessionClaims, ticket_type: str
    ) -> tuple[list[Ticket], MyTicketStats]:
        if ticket_type not in MY_TICKET_TYPES:
            raise ValidationError(
                "Invalid type, expected one of: " + ", ".join(MY_TICKET_TYPES), field="type"
            )
        clauses = [scope_clause(claims), self.my_tickets_clause(claims, ticket_type)]

        tickets: list[Ticket] = (
            self.db.query(Ticket)
            .filter(*clauses)
            .order_by(priority_weight.desc(), Ticket.created_at.desc(), Ticket.id.desc())
            .all()
        )
        return tickets, self._stats(clauses)

    def _stats(self, clauses: list[ColumnElement[bool]]) -> MyTicketStats:
        row = (
            self.db.query(
                func.count(Ticket.id),
                count_if(Ticket.status == TicketStatus.OPEN.value),
                count_if(Ticket.status == TicketStatus.IN_PROGRESS.value),
                count_if(Ticket.status == TicketStatus.PENDING_APPROVAL.value),
                count_if(Ticket.status == TicketStatus.RESOLVED.value),
                count_if(Ticket.status == TicketStatus.CLOSED.value),
                count_if(Ticket.priority == TicketPriority.URGENT.value),
                count_if(Ticket.priority == TicketPriority.HIGH.value),
            )
            .filter(*clauses)
            .one()
        )
        total, open_, in_progress, pending, resolved, closed, urgent, high = (
            int(v or 0) for v in row
        )
        return MyTicketStats(
            total=total,
            open=open_,
            in_progress=in_progress,
            pending_approval=pending,
            resolved=resolved,
            closed=closed,
            urgent=urgent,
            high=high,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _transfer_note(
        previous: User | None, target: User, claims: SessionClaims, reason: str | None
    ) -> str:
        where = target.department or target.role
        if previous is not None and previous.id != target.id:
            note = f"Ticket transferred from {previous.name} to {target.name} ({where})"
        else:
            note = f"Ticket assigned to {target.name} ({where})"
        note += f" by {claims.name}"
        if reason and reason.strip():
            note += f". Reason: {reason.strip()}"
        return note + "."

    @staticmethod
    def _log_status_change(ticket: Ticket, previous_status: str, claims: SessionClaims) -> None:
        if ticket.status != previous_status:
            logger.info(
                "ticket_status_changed",
                ticket_id=ticket.id,
                from_status=previous_status,
                to_status=ticket.status,
                actor_id=claims.user_id,
            )
