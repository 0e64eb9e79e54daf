from app.auth.schemas.user import UserResponse
from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel
from app.tickets.schemas.ticket import TicketResponse


class CommentSearchItem(CamelModel):
    id: str
    ticket_id: str
    ticket_title: str
    user_id: str
    user_name: str | None = None
    content: str
    is_internal: bool
    created_at: UTCDatetime


class GlobalSearchResults(CamelModel):
    tickets: list[TicketResponse] = []
    users: list[UserResponse] = []
    comments: list[CommentSearchItem] = []


class GlobalSearchResponse(CamelModel):
    success: bool = True
    results: GlobalSearchResults
    total_results: int
    search_term: str
    entity: str
