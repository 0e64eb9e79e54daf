from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.dependencies import get_session_claims, require_capability
from app.core.constants import DEFAULT_TICKET_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.exceptions import ValidationError
from app.core.schemas import MessageResponse, PaginationMeta
from app.db.session import get_db
from app.tickets.models.ticket import TicketCategory, TicketPriority, TicketStatus
from app.tickets.policy import Capability
from app.tickets.schemas.comment import (
    CommentCreate,
    CommentListResponse,
    CommentMutationResponse,
)
from app.tickets.schemas.filter import (
    FilterOptionsResponse,
    TicketFilter,
    TicketFilterResponse,
)
from app.tickets.schemas.ticket import (
    AssigneeSummary,
    MyTicketsResponse,
    TicketCreate,
    TicketDetailResponse,
    TicketListResponse,
    TicketMutationResponse,
    TicketUpdate,
    TransferHistoryItem,
    TransferHistoryResponse,
    TransferRequest,
    TransferResponse,
)
from app.tickets.services.response_builder import (
    build_comment_response,
    build_ticket_list,
    build_ticket_response,
)
from app.tickets.services.search_service import SearchService
from app.tickets.services.ticket_service import TicketService

router = APIRouter()


@router.get("/tickets", response_model=TicketListResponse)
def list_tickets(
    status_filter: TicketStatus | None = Query(None, alias="status"),
    category: TicketCategory | None = Query(None),
    priority: TicketPriority | None = Query(None),
    assigned_to: int | None = Query(None, alias="assignedTo"),
    created_by: int | None = Query(None, alias="createdBy"),
    limit: int = Query(DEFAULT_TICKET_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TicketListResponse:
    filters = TicketFilter(
        status=[status_filter] if status_filter else [],
        category=[category] if category else [],
        priority=[priority] if priority else [],
        assigned_to=[assigned_to] if assigned_to is not None else [],
        created_by=[created_by] if created_by is not None else [],
        limit=limit,
        offset=offset,
    )
    tickets, total = TicketService(db).list_tickets(claims, filters)
    return TicketListResponse(tickets=build_ticket_list(tickets), count=len(tickets), total=total)


@router.post("/tickets", response_model=TicketMutationResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    data: TicketCreate,
    claims: SessionClaims = Depends(require_capability(Capability.CREATE_TICKET)),
    db: Session = Depends(get_db),
) -> TicketMutationResponse:
    ticket = TicketService(db).create_ticket(claims, data)
    return TicketMutationResponse(
        message="Ticket created successfully", ticket=build_ticket_response(ticket)
    )


@router.get("/tickets/my", response_model=MyTicketsResponse)
def get_my_tickets(
    ticket_type: str = Query("all", alias="type"),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> MyTicketsResponse:
    tickets, stats = TicketService(db).get_my_tickets(claims, ticket_type)
    return MyTicketsResponse(type=ticket_type, tickets=build_ticket_list(tickets), stats=stats)


@router.get("/tickets/filter", response_model=TicketFilterResponse)
def filter_tickets(
    filters: str | None = Query(None, description="JSON-encoded ticket filter"),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TicketFilterResponse:
    try:
        parsed = TicketFilter.model_validate_json(filters) if filters else TicketFilter()
    except PydanticValidationError as exc:
        raise ValidationError("Invalid filters format", field="filters") from exc

    tickets, total = TicketService(db).list_tickets(claims, parsed)
    return TicketFilterResponse(
        tickets=build_ticket_list(tickets),
        pagination=PaginationMeta.from_query(total, parsed.limit, parsed.offset),
        applied_filters=parsed,
    )


@router.post("/tickets/filter", response_model=FilterOptionsResponse)
def get_filter_options(
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> FilterOptionsResponse:
    return FilterOptionsResponse(options=SearchService(db).get_filter_options(claims))


@router.post("/tickets/transfer", response_model=TransferResponse)
def transfer_ticket(
    data: TransferRequest,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TransferResponse:
    ticket, assignee = TicketService(db).transfer_ticket(claims, data)
    return TransferResponse(
        message=f"Ticket transferred to {assignee.name}",
        ticket=build_ticket_response(ticket),
        assignee=AssigneeSummary(
            id=str(assignee.id),
            name=assignee.name,
            email=assignee.email,
            role=assignee.role,
            department=assignee.department,
        ),
    )


@router.get("/tickets/transfer", response_model=TransferHistoryResponse)
def get_transfer_history(
    ticket_id: int = Query(..., alias="ticketId"),
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TransferHistoryResponse:
    history = TicketService(db).transfer_history(claims, ticket_id)
    return TransferHistoryResponse(
        ticket_id=str(ticket_id),
        transfer_history=[
            TransferHistoryItem(
                id=str(c.id),
                user_id=str(c.user_id),
                user_name=c.author.name if c.author else None,
                user_role=c.author.role if c.author else None,
                content=c.content,
                created_at=c.created_at,
            )
            for c in history
        ],
    )


@router.get("/tickets/{ticket_id}", response_model=TicketDetailResponse)
def get_ticket(
    ticket_id: int,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TicketDetailResponse:
    ticket, comments = TicketService(db).get_ticket_detail(claims, ticket_id)
    return TicketDetailResponse(
        ticket=build_ticket_response(ticket),
        comments=[build_comment_response(c) for c in comments],
    )


@router.put("/tickets/{ticket_id}", response_model=TicketMutationResponse)
def update_ticket(
    ticket_id: int,
    data: TicketUpdate,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> TicketMutationResponse:
    ticket = TicketService(db).update_ticket(claims, ticket_id, data)
    return TicketMutationResponse(
        message="Ticket updated successfully", ticket=build_ticket_response(ticket)
    )


@router.delete("/tickets/{ticket_id}", response_model=MessageResponse)
def delete_ticket(
    ticket_id: int,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> MessageResponse:
    TicketService(db).delete_ticket(claims, ticket_id)
    return MessageResponse(message="Ticket deleted successfully")


@router.post("/tickets/{ticket_id}/take", response_model=TicketMutationResponse)
def take_ticket(
    ticket_id: int,
    claims: SessionClaims = Depends(require_capability(Capability.TAKE_TICKET)),
    db: Session = Depends(get_db),
) -> TicketMutationResponse:
    ticket = TicketService(db).take_ticket(claims, ticket_id)
    return TicketMutationResponse(
        message="Ticket assigned to you", ticket=build_ticket_response(ticket)
    )


@router.get("/tickets/{ticket_id}/comments", response_model=CommentListResponse)
def list_comments(
    ticket_id: int,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> CommentListResponse:
    comments = TicketService(db).list_comments(claims, ticket_id)
    return CommentListResponse(
        comments=[build_comment_response(c) for c in comments], count=len(comments)
    )


@router.post(
    "/tickets/{ticket_id}/comments",
    response_model=CommentMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    ticket_id: int,
    data: CommentCreate,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> CommentMutationResponse:
    comment = TicketService(db).add_comment(claims, ticket_id, data)
    return CommentMutationResponse(
        message="Comment added successfully", comment=build_comment_response(comment)
    )
