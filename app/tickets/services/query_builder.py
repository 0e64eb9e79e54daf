"""Composes every ticket listing query from the caller's scope plus filters.

The role scope predicate is always the first clause and is ANDed with the
explicit filters, so a filter can only narrow what the role may see. All
values reach the database as bound parameters; LIKE patterns are escaped.
"""

from typing import Any

from sqlalchemy import and_, case, false, func, literal, or_, true
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql.elements import ColumnElement

from app.auth.claims import SessionClaims
from app.auth.models.user import User
from app.core.constants import TAG_SEPARATOR
from app.core.datetime_utils import end_of_day_exclusive, start_of_day
from app.tickets.models.ticket import PRIORITY_RANK, Ticket, TicketStatus
from app.tickets.policy import TicketScope, policy_for, sees_all_tickets
from app.tickets.schemas.filter import TicketFilter

LIKE_ESCAPE = "\\"

# Higher weight sorts first in descending order
priority_weight = case(
    {value: len(PRIORITY_RANK) + 1 - rank for value, rank in PRIORITY_RANK.items()},
    value=Ticket.priority,
    else_=0,
)

SORTABLE_COLUMNS: dict[str, Any] = {
    "created_at": Ticket.created_at,
    "updated_at": Ticket.updated_at,
    "title": Ticket.title,
    "priority": priority_weight,
    "status": Ticket.status,
}
DEFAULT_SORT = "created_at"


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


def count_if(condition: ColumnElement[bool]) -> ColumnElement[int]:
    """SUM(CASE WHEN condition THEN 1 ELSE 0 END), zero on an empty set."""
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def scope_clause(claims: SessionClaims) -> ColumnElement[bool]:
    """SQL form of the role's visibility scope (mirrors ``policy.scope_allows``)."""
    scope = policy_for(claims.role).scope
    uid = claims.user_id
    if scope is TicketScope.ALL:
        return true()
    if scope is TicketScope.OWN:
        return Ticket.created_by == uid
    if scope is TicketScope.ASSIGNED_OR_OPEN:
        return or_(Ticket.assigned_to == uid, Ticket.status == TicketStatus.OPEN.value)
    if scope is TicketScope.INVOLVED_OR_AVAILABLE:
        return or_(
            Ticket.created_by == uid,
            Ticket.assigned_to == uid,
            and_(Ticket.status == TicketStatus.OPEN.value, Ticket.assigned_to.is_(None)),
        )
    return false()


def comment_clause(claims: SessionClaims) -> ColumnElement[bool]:
    """Tickets whose comments the caller may read (mirrors the COMMENT guard)."""
    if sees_all_tickets(claims.role):
        return true()
    return or_(Ticket.created_by == claims.user_id, Ticket.assigned_to == claims.user_id)


def search_clause(term: str) -> ColumnElement[bool]:
    pattern = contains_pattern(term)
    return or_(
        Ticket.title.ilike(pattern, escape=LIKE_ESCAPE),
        Ticket.description.ilike(pattern, escape=LIKE_ESCAPE),
        Ticket.category.ilike(pattern, escape=LIKE_ESCAPE),
        Ticket.creator.has(User.name.ilike(pattern, escape=LIKE_ESCAPE)),
        Ticket.assignee.has(User.name.ilike(pattern, escape=LIKE_ESCAPE)),
    )


def tag_clause(tags: list[str]) -> ColumnElement[bool]:
    """Match whole tags: ``,a,b,`` LIKE ``%,tag,%`` for any requested tag."""
    bounded = literal(TAG_SEPARATOR) + func.coalesce(Ticket.tags, "") + literal(TAG_SEPARATOR)
    return or_(
        *(
            bounded.like(
                f"%{TAG_SEPARATOR}{escape_like(tag)}{TAG_SEPARATOR}%", escape=LIKE_ESCAPE
            )
            for tag in tags
        )
    )


class TicketQueryBuilder:
    """Builds the WHERE, ORDER BY and pagination for one ticket listing.

    Args:
        claims: The caller; its role scope is always applied.
        filters: Explicit filters, sort and page window.
    """

    def __init__(self, claims: SessionClaims, filters: TicketFilter | None = None) -> None:
        self.claims = claims
        self.filters = filters or TicketFilter()

    def clauses(self) -> list[ColumnElement[bool]]:
        f = self.filters
        clauses: list[ColumnElement[bool]] = [scope_clause(self.claims)]

        if f.status:
            clauses.append(Ticket.status.in_([s.value for s in f.status]))
        if f.priority:
            clauses.append(Ticket.priority.in_([p.value for p in f.priority]))
        if f.category:
            clauses.append(Ticket.category.in_([c.value for c in f.category]))
        if f.assigned_to:
            clauses.append(Ticket.assigned_to.in_(f.assigned_to))
        if f.created_by:
            clauses.append(Ticket.created_by.in_(f.created_by))
        if f.date_range is not None:
            if f.date_range.from_ is not None:
                clauses.append(Ticket.created_at >= start_of_day(f.date_range.from_))
            if f.date_range.to is not None:
                clauses.append(Ticket.created_at < end_of_day_exclusive(f.date_range.to))
        if f.tags:
            clauses.append(tag_clause(f.tags))
        if f.search_term:
            clauses.append(search_clause(f.search_term))

        return clauses

    def order_by(self) -> list[Any]:
        column = SORTABLE_COLUMNS.get(self.filters.sort_by, SORTABLE_COLUMNS[DEFAULT_SORT])
        if self.filters.sort_order.lower() == "asc":
            return [column.asc(), Ticket.id.asc()]
        return [column.desc(), Ticket.id.desc()]

    def query(self, db: Session) -> Query:
        return db.query(Ticket).filter(*self.clauses())

    def count(self, db: Session) -> int:
        total: int = db.query(func.count(Ticket.id)).filter(*self.clauses()).scalar() or 0
        return total

    def fetch(self, db: Session) -> list[Ticket]:
        tickets: list[Ticket] = (
            self.query(db)
            .order_by(*self.order_by())
            .offset(self.filters.offset)
            .limit(self.filters.limit)
            .all()
        )
        return tickets

    def page(self, db: Session) -> tuple[list[Ticket], int]:
        """One page of tickets plus the total matching count (same clauses, no window)."""
        return self.fetch(db), self.count(db)
