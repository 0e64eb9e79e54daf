from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.dependencies import get_session_claims, require_capability
from app.auth.schemas.user import UserSearchResponse
from app.core.constants import (
    DEFAULT_TICKET_PAGE_SIZE,
    GLOBAL_SEARCH_LIMIT,
    MAX_PAGE_SIZE,
    USER_SEARCH_LIMIT,
)
from app.core.schemas import PaginationMeta
from app.db.session import get_db
from app.tickets.models.ticket import TicketCategory, TicketPriority, TicketStatus
from app.tickets.policy import Capability
from app.tickets.schemas.filter import DateRange, TicketFilter, TicketFilterResponse
from app.tickets.schemas.search import GlobalSearchResponse
from app.tickets.services.response_builder import build_ticket_list
from app.tickets.services.search_service import SearchService

router = APIRouter()


@router.get("", response_model=GlobalSearchResponse)
def global_search(
    q: str = Query(..., description="Search term"),
    entity: str = Query("all"),
    limit: int = Query(GLOBAL_SEARCH_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> GlobalSearchResponse:
    results = SearchService(db).global_search(claims, q, entity, limit)
    return GlobalSearchResponse(
        results=results,
        total_results=len(results.tickets) + len(results.users) + len(results.comments),
        search_term=q.strip(),
        entity=entity,
    )


@router.get("/tickets", response_model=TicketFilterResponse)
def search_tickets(
    q: str | None = Query(None),
    status: TicketStatus | None = Query(None),
    priority: TicketPriority | None = Query(None),
    category: TicketCategory | None = Query(None),
    assigned_to: int | None = Query(None, alias="assignedTo"),
    created_by: int | None = Query(None, alias="createdBy"),
    date_from: date | None = Query(None, alias="dateFrom"),
    date_to: date | None = Query(None, alias="dateTo"),
    tags: str | None = Query(None, description="Comma-separated tags"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    limit: int = Query(DEFAULT_TICKET_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TicketFilterResponse:
    filters = TicketFilter(
        status=[status] if status else [],
        priority=[priority] if priority else [],
        category=[category] if category else [],
        assigned_to=[assigned_to] if assigned_to is not None else [],
        created_by=[created_by] if created_by is not None else [],
        date_range=DateRange(from_=date_from, to=date_to) if date_from or date_to else None,
        tags=tags.split(",") if tags else [],
        search_term=q,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    tickets, total = SearchService(db).search_tickets(claims, filters)
    return TicketFilterResponse(
        tickets=build_ticket_list(tickets),
        pagination=PaginationMeta.from_query(total, limit, offset),
        applied_filters=filters,
    )


@router.get("/users", response_model=UserSearchResponse)
def search_users(
    q: str | None = Query(None),
    role: str | None = Query(None),
    department: str | None = Query(None),
    location: str | None = Query(None),
    sort_by: str = Query("name", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    limit: int = Query(USER_SEARCH_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    _claims: SessionClaims = Depends(require_capability(Capability.SEARCH_USERS)),
    db: Session = Depends(get_db),
) -> UserSearchResponse:
    users, total = SearchService(db).search_users(
        term=q,
        role=role,
        department=department,
        location=location,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return UserSearchResponse(
        users=users, pagination=PaginationMeta.from_query(total, limit, offset)
    )
