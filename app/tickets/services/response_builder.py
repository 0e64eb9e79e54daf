"""Row-to-response shaping shared by every route.

Ids leave the API as strings, tags as ordered lists, int/bool columns as
booleans and timestamps as UTC ISO-8601 (via ``UTCDatetime``).
"""

from collections.abc import Iterable

from app.auth.models.user import User
from app.auth.schemas.user import UserResponse, UserSummary
from app.core.constants import TAG_SEPARATOR
from app.core.schemas import GroupCount
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import Ticket
from app.tickets.schemas.comment import CommentResponse
from app.tickets.schemas.ticket import TicketResponse


def split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(TAG_SEPARATOR) if tag.strip()]


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip tags, drop empties and separator characters, keep first occurrence order."""
    normalized: list[str] = []
    for tag in tags or ():
        cleaned = tag.replace(TAG_SEPARATOR, " ").strip()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized


def join_tags(tags: Iterable[str] | None) -> str | None:
    normalized = normalize_tags(tags)
    return TAG_SEPARATOR.join(normalized) if normalized else None


def optional_id(value: int | None) -> str | None:
    return None if value is None else str(value)


def build_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        department=user.department,
        location=user.location,
        is_active=bool(user.is_active),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def build_user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=str(user.id),
        name=user.name,
        email=user.email,
        role=user.role,
        department=user.department,
    )


def build_ticket_response(ticket: Ticket) -> TicketResponse:
    creator = ticket.creator
    assignee = ticket.assignee
    return TicketResponse(
        id=str(ticket.id),
        title=ticket.title,
        description=ticket.description,
        category=ticket.category,
        priority=ticket.priority,
        status=ticket.status,
        created_by=str(ticket.created_by),
        creator_name=creator.name if creator else None,
        creator_email=creator.email if creator else None,
        assigned_to=optional_id(ticket.assigned_to),
        assignee_name=assignee.name if assignee else None,
        assignee_email=assignee.email if assignee else None,
        assigned_role=ticket.assigned_role,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        due_date=ticket.due_date,
        tags=split_tags(ticket.tags),
    )


def build_ticket_list(tickets: Iterable[Ticket]) -> list[TicketResponse]:
    return [build_ticket_response(t) for t in tickets]


def build_comment_response(comment: TicketComment) -> CommentResponse:
    author = comment.author
    return CommentResponse(
        id=str(comment.id),
        ticket_id=str(comment.ticket_id),
        user_id=str(comment.user_id),
        user_name=author.name if author else None,
        user_role=author.role if author else None,
        content=comment.content,
        is_internal=bool(comment.is_internal),
        created_at=comment.created_at,
    )


def build_group_counts(rows: Iterable[tuple[str | None, int]]) -> list[GroupCount]:
    return [GroupCount(key=key, count=int(count or 0)) for key, count in rows]
