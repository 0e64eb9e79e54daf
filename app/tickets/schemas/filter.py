from datetime import date

from pydantic import Field, field_validator

from app.auth.schemas.user import UserSummary
from app.core.constants import DEFAULT_TICKET_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.schemas import CamelModel, PaginationMeta
from app.tickets.models.ticket import TicketCategory, TicketPriority, TicketStatus
from app.tickets.schemas.ticket import TicketResponse


class DateRange(CamelModel):
    """Inclusive calendar-date bounds on ``created_at``."""

    from_: date | None = Field(None, alias="from")
    to: date | None = None


class TicketFilter(CamelModel):
    status: list[TicketStatus] = []
    priority: list[TicketPriority] = []
    category: list[TicketCategory] = []
    assigned_to: list[int] = []
    created_by: list[int] = []
    date_range: DateRange | None = None
    tags: list[str] = []
    search_term: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    limit: int = Field(DEFAULT_TICKET_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    offset: int = Field(0, ge=0)

    @field_validator("tags")
    @classmethod
    def drop_blank_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag and tag.strip()]

    @field_validator("search_term")
    @classmethod
    def blank_search_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


class TicketFilterResponse(CamelModel):
    success: bool = True
    tickets: list[TicketResponse]
    pagination: PaginationMeta
    applied_filters: TicketFilter


class FilterOptions(CamelModel):
    statuses: list[str]
    priorities: list[str]
    categories: list[str]
    assignees: list[UserSummary]
    creators: list[UserSummary]
    tags: list[str]


class FilterOptionsResponse(CamelModel):
    success: bool = True
    options: FilterOptions
