from pydantic import Field, field_validator

from app.core.constants import MAX_TITLE_LENGTH
from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel
from app.tickets.models.ticket import TicketCategory, TicketPriority, TicketStatus
from app.tickets.schemas.comment import CommentResponse


class TicketCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str = Field(..., min_length=1)
    category: TicketCategory
    priority: TicketPriority
    # A user id, or for role-based assignment one of "technical" / "assignee"
    assigned_to: str | int | None = None
    assigned_role: str | None = None
    due_date: str | None = None
    tags: list[str] | None = None

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class TicketUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""

    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(None, min_length=1)
    category: TicketCategory | None = None
    priority: TicketPriority | None = None
    status: TicketStatus | None = None
    assigned_to: str | int | None = None
    assigned_role: str | None = None
    due_date: str | None = None
    tags: list[str] | None = None


class TicketResponse(CamelModel):
    id: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    created_by: str
    creator_name: str | None = None
    creator_email: str | None = None
    assigned_to: str | None = None
    assignee_name: str | None = None
    assignee_email: str | None = None
    assigned_role: str | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime | None = None
    due_date: UTCDatetime | None = None
    tags: list[str] = []


class TicketDetailResponse(CamelModel):
    ticket: TicketResponse
    comments: list[CommentResponse]


class TicketListResponse(CamelModel):
    tickets: list[TicketResponse]
    count: int
    total: int


class TicketMutationResponse(CamelModel):
    success: bool = True
    message: str
    ticket: TicketResponse


class MyTicketStats(CamelModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    pending_approval: int = 0
    resolved: int = 0
    closed: int = 0
    urgent: int = 0
    high: int = 0


class MyTicketsResponse(CamelModel):
    success: bool = True
    type: str
    tickets: list[TicketResponse]
    stats: MyTicketStats


class TransferRequest(CamelModel):
    ticket_id: int
    assignee_id: int
    reason: str | None = Field(None, max_length=1000)


class AssigneeSummary(CamelModel):
    id: str
    name: str
    email: str
    role: str
    department: str | None = None


class TransferResponse(CamelModel):
    success: bool = True
    message: str
    ticket: TicketResponse
    assignee: AssigneeSummary


class TransferHistoryItem(CamelModel):
    id: str
    user_id: str
    user_name: str | None = None
    user_role: str | None = None
    content: str
    created_at: UTCDatetime


class TransferHistoryResponse(CamelModel):
    success: bool = True
    ticket_id: str
    transfer_history: list[TransferHistoryItem]
