from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.auth.claims import SessionClaims
from app.auth.models.user import User
from app.auth.schemas.user import UserSearchItem
from app.core.exceptions import ValidationError
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import ACTIVE_STATUSES, Ticket
from app.tickets.policy import Capability, has_capability
from app.tickets.schemas.filter import FilterOptions, TicketFilter
from app.tickets.schemas.search import CommentSearchItem, GlobalSearchResults
from app.tickets.services.query_builder import (
    LIKE_ESCAPE,
    TicketQueryBuilder,
    comment_clause,
    contains_pattern,
    count_if,
    scope_clause,
)
from app.tickets.services.response_builder import (
    build_ticket_list,
    build_user_response,
    build_user_summary,
    split_tags,
)

logger = structlog.get_logger(__name__)

SEARCH_ENTITIES = ("all", "tickets", "users", "comments")


def _user_search_clause(term: str) -> ColumnElement[bool]:
    pattern = contains_pattern(term)
    return or_(
        User.name.ilike(pattern, escape=LIKE_ESCAPE),
        User.email.ilike(pattern, escape=LIKE_ESCAPE),
        User.department.ilike(pattern, escape=LIKE_ESCAPE),
        User.location.ilike(pattern, escape=LIKE_ESCAPE),
    )


class SearchService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def global_search(
        self, claims: SessionClaims, term: str, entity: str, limit: int
    ) -> GlobalSearchResults:
        """Search tickets, users and comments the caller is allowed to see.

        Users are only searched for roles holding SEARCH_USERS; comments are
        limited to tickets whose comments the caller may read. A blank term
        matches nothing.
        """
        term = term.strip()
        if not term:
            return GlobalSearchResults()
        if entity not in SEARCH_ENTITIES:
            raise ValidationError(
                "Invalid entity, expected one of: " + ", ".join(SEARCH_ENTITIES), field="entity"
            )

        results = GlobalSearchResults()
        if entity in ("all", "tickets"):
            filters = TicketFilter(search_term=term, limit=limit)
            results.tickets = build_ticket_list(TicketQueryBuilder(claims, filters).fetch(self.db))

        if entity in ("all", "users") and has_capability(claims.role, Capability.SEARCH_USERS):
            users = (
                self.db.query(User)
                .filter(_user_search_clause(term))
                .order_by(User.name.asc(), User.id.asc())
                .limit(limit)
                .all()
            )
            results.users = [build_user_response(u) for u in users]

        if entity in ("all", "comments"):
            results.comments = self._search_comments(claims, term, limit)

        logger.info(
            "global_search",
            user_id=claims.user_id,
            entity=entity,
            results=len(results.tickets) + len(results.users) + len(results.comments),
        )
        return results

    def _search_comments(
        self, claims: SessionClaims, term: str, limit: int
    ) -> list[CommentSearchItem]:
        rows = (
            self.db.query(TicketComment, Ticket.title)
            .join(Ticket, TicketComment.ticket_id == Ticket.id)
            .filter(
                comment_clause(claims),
                TicketComment.content.ilike(contains_pattern(term), escape=LIKE_ESCAPE),
            )
            .order_by(TicketComment.created_at.desc(), TicketComment.id.desc())
            .limit(limit)
            .all()
        )
        return [
            CommentSearchItem(
                id=str(comment.id),
                ticket_id=str(comment.ticket_id),
                ticket_title=title,
                user_id=str(comment.user_id),
                user_name=comment.author.name if comment.author else None,
                content=comment.content,
                is_internal=bool(comment.is_internal),
                created_at=comment.created_at,
            )
            for comment, title in rows
        ]

    def search_tickets(
        self, claims: SessionClaims, filters: TicketFilter
    ) -> tuple[list[Ticket], int]:
        return TicketQueryBuilder(claims, filters).page(self.db)

    def search_users(
        self,
        *,
        term: str | None,
        role: str | None,
        department: str | None,
        location: str | None,
        sort_by: str,
        sort_order: str,
        limit: int,
        offset: int,
    ) -> tuple[list[UserSearchItem], int]:
        ticket_count = (
            select(func.count(Ticket.id))
            .where(or_(Ticket.created_by == User.id, Ticket.assigned_to == User.id))
            .correlate(User)
            .scalar_subquery()
        )
        active_tickets = (
            select(count_if(Ticket.status.in_(ACTIVE_STATUSES)))
            .where(Ticket.assigned_to == User.id)
            .correlate(User)
            .scalar_subquery()
        )

        clauses = []
        if term and term.strip():
            clauses.append(_user_search_clause(term.strip()))
        if role:
            clauses.append(User.role == role)
        if department:
            clauses.append(User.department == department)
        if location:
            clauses.append(User.location == location)

        # Unknown sort keys fall back to name
        sort_columns = {
            "name": User.name,
            "email": User.email,
            "role": User.role,
            "department": User.department,
            "location": User.location,
            "created_at": User.created_at,
            "ticket_count": ticket_count,
        }
        column = sort_columns.get(sort_by, User.name)
        if sort_order.lower() == "desc":
            ordering = [column.desc(), User.id.desc()]
        else:
            ordering = [column.asc(), User.id.asc()]

        total = self.db.query(func.count(User.id)).filter(*clauses).scalar() or 0
        rows = (
            self.db.query(User, ticket_count, active_tickets)
            .filter(*clauses)
            .order_by(*ordering)
            .offset(offset)
            .limit(limit)
            .all()
        )
        items = [
            UserSearchItem(
                **build_user_response(user).model_dump(),
                ticket_count=int(n_tickets or 0),
                active_tickets=int(n_active or 0),
            )
            for user, n_tickets, n_active in rows
        ]
        return items, int(total)

    def get_filter_options(self, claims: SessionClaims) -> FilterOptions:
        """Distinct values present in the caller's visible tickets, for filter pickers."""
        scope = scope_clause(claims)

        def distinct_values(column: Any) -> list[str]:
            rows = self.db.query(column).filter(scope).distinct().order_by(column).all()
            return [value for (value,) in rows if value is not None]

        visible_assignees = select(Ticket.assigned_to).where(scope, Ticket.assigned_to.is_not(None))
        visible_creators = select(Ticket.created_by).where(scope)
        assignees = (
            self.db.query(User).filter(User.id.in_(visible_assignees)).order_by(User.name).all()
        )
        creators = (
            self.db.query(User).filter(User.id.in_(visible_creators)).order_by(User.name).all()
        )

        tags: set[str] = set()
        for (raw,) in self.db.query(Ticket.tags).filter(scope, Ticket.tags.is_not(None)).all():
            tags.update(split_tags(raw))

        return FilterOptions(
            statuses=distinct_values(Ticket.status),
            priorities=distinct_values(Ticket.priority),
            categories=distinct_values(Ticket.category),
            assignees=[build_user_summary(u) for u in assignees],
            creators=[build_user_summary(u) for u in creators],
            tags=sorted(tags, key=str.lower),
        )
