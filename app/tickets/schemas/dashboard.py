from pydantic import Field

from app.auth.schemas.user import UserResponse
from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel, GroupCount
from app.tickets.schemas.ticket import TicketResponse


class DetailedStats(CamelModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    pending_approval: int = 0
    resolved: int = 0
    closed: int = 0
    urgent: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0
    assigned_to_me: int = 0
    created_by_me: int = 0
    overdue: int = 0


class TrendPoint(CamelModel):
    date: str
    count: int


class Workload(CamelModel):
    assigned: int = 0
    in_progress: int = 0
    pending_approval: int = 0
    resolved: int = 0
    closed: int = 0
    overdue: int = 0


class UserStats(CamelModel):
    total_users: int = 0
    active_users: int = 0
    by_role: list[GroupCount] = []


class Performance(CamelModel):
    resolved_last_30_days: int = 0
    avg_resolution_days: float | None = None


class TopAssignee(CamelModel):
    id: str
    name: str
    role: str
    department: str | None = None
    assigned_tickets: int = 0
    resolved_tickets: int = 0


class RoleSpecificData(CamelModel):
    """Only the block matching the caller's role is filled in."""

    ticket_trends: list[TrendPoint] | None = None
    workload: Workload | None = None
    available_tickets: list[TicketResponse] | None = None
    available_count: int | None = None
    user_stats: UserStats | None = None
    performance: Performance | None = None
    top_assignees: list[TopAssignee] | None = None


class DashboardResponse(CamelModel):
    success: bool = True
    user: UserResponse
    user_role: str
    detailed_stats: DetailedStats
    category_breakdown: list[GroupCount]
    priority_breakdown: list[GroupCount]
    status_breakdown: list[GroupCount]
    recent_tickets: list[TicketResponse]
    overdue_tickets: list[TicketResponse]
    high_priority_tickets: list[TicketResponse]
    role_specific_data: RoleSpecificData = Field(default_factory=RoleSpecificData)
    last_updated: UTCDatetime


class CompactStats(CamelModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
    urgent: int = 0
    overdue: int = 0


class DashboardStatsResponse(CamelModel):
    success: bool = True
    stats: CompactStats
    category_breakdown: list[GroupCount]
    priority_breakdown: list[GroupCount]
    recent_tickets: list[TicketResponse]
    overdue_tickets: list[TicketResponse]
