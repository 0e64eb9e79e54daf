"""Dashboard statistics service.

Every number here comes from a grouped or conditional COUNT in SQL; result
sets are only materialised for the short ticket lists the dashboard shows.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, func
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.auth.claims import SessionClaims
from app.auth.models.user import User, UserRole
from app.core.constants import (
    DASHBOARD_LIST_LIMIT,
    DEFAULT_RANKINGS_LIMIT,
    RECENT_TICKETS_DAYS,
    TREND_WINDOW_DAYS,
)
from app.core.datetime_utils import utcnow
from app.core.schemas import GroupCount
from app.tickets.models.ticket import (
    FINISHED_STATUSES,
    Ticket,
    TicketPriority,
    TicketStatus,
)
from app.tickets.policy import sees_all_tickets
from app.tickets.schemas.dashboard import (
    CompactStats,
    DetailedStats,
    Performance,
    RoleSpecificData,
    TopAssignee,
    TrendPoint,
    UserStats,
    Workload,
)
from app.tickets.services.query_builder import count_if, priority_weight, scope_clause
from app.tickets.services.response_builder import build_group_counts, build_ticket_list


def overdue_clause(now: datetime) -> ColumnElement[bool]:
    return and_(
        Ticket.due_date.is_not(None),
        Ticket.due_date < now,
        Ticket.status.not_in(FINISHED_STATUSES),
    )


def resolution_days(db: Session) -> ColumnElement[Any]:
    """Days between creation and last update, in the bound dialect's date arithmetic."""
    if db.get_bind().dialect.name == "sqlite":
        return func.julianday(Ticket.updated_at) - func.julianday(Ticket.created_at)
    return func.extract("epoch", Ticket.updated_at - Ticket.created_at) / 86400.0


class DashboardService:
    """Service for the role-aware dashboard."""

    @staticmethod
    def get_detailed_stats(db: Session, claims: SessionClaims, now: datetime) -> DetailedStats:
        """Get ticket counters within the caller's scope.

        Args:
            db: Database session.
            claims: The caller; only tickets in its scope are counted.
            now: Reference time for the overdue counter.

        Returns:
            DetailedStats with status, priority and ownership counters.
        """
        row = (
            db.query(
                func.count(Ticket.id),
                count_if(Ticket.status == TicketStatus.OPEN.value),
                count_if(Ticket.status == TicketStatus.IN_PROGRESS.value),
                count_if(Ticket.status == TicketStatus.PENDING_APPROVAL.value),
                count_if(Ticket.status == TicketStatus.RESOLVED.value),
                count_if(Ticket.status == TicketStatus.CLOSED.value),
                count_if(Ticket.priority == TicketPriority.URGENT.value),
                count_if(Ticket.priority == TicketPriority.HIGH.value),
                count_if(Ticket.priority == TicketPriority.MEDIUM.value),
                count_if(Ticket.priority == TicketPriority.LOW.value),
                count_if(Ticket.assigned_to == claims.user_id),
                count_if(Ticket.created_by == claims.user_id),
                count_if(overdue_clause(now)),
            )
            .filter(scope_clause(claims))
            .one()
        )
        values = [int(v or 0) for v in row]
        fields = list(DetailedStats.model_fields)
        return DetailedStats(**dict(zip(fields, values, strict=True)))

    @staticmethod
    def get_breakdown(db: Session, claims: SessionClaims, column: Any) -> list[GroupCount]:
        rows = (
            db.query(column, func.count(Ticket.id))
            .filter(scope_clause(claims))
            .group_by(column)
            .order_by(func.count(Ticket.id).desc(), column)
            .all()
        )
        return build_group_counts(rows)

    @staticmethod
    def get_recent_tickets(db: Session, claims: SessionClaims, now: datetime) -> list[Ticket]:
        since = now - timedelta(days=RECENT_TICKETS_DAYS)
        tickets: list[Ticket] = (
            db.query(Ticket)
            .filter(scope_clause(claims), Ticket.created_at >= since)
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .limit(DASHBOARD_LIST_LIMIT)
            .all()
        )
        return tickets

    @staticmethod
    def get_overdue_tickets(db: Session, claims: SessionClaims, now: datetime) -> list[Ticket]:
        tickets: list[Ticket] = (
            db.query(Ticket)
            .filter(scope_clause(claims), overdue_clause(now))
            .order_by(Ticket.due_date.asc(), Ticket.id.asc())
            .limit(DASHBOARD_LIST_LIMIT)
            .all()
        )
        return tickets

    @staticmethod
    def get_high_priority_tickets(db: Session, claims: SessionClaims) -> list[Ticket]:
        tickets: list[Ticket] = (
            db.query(Ticket)
            .filter(
                scope_clause(claims),
                Ticket.priority.in_((TicketPriority.URGENT.value, TicketPriority.HIGH.value)),
                Ticket.status.not_in(FINISHED_STATUSES),
            )
            .order_by(priority_weight.desc(), Ticket.created_at.desc(), Ticket.id.desc())
            .limit(DASHBOARD_LIST_LIMIT)
            .all()
        )
        return tickets

    # ------------------------------------------------------------------
    # Role-specific blocks
    # ------------------------------------------------------------------

    @staticmethod
    def get_ticket_trends(db: Session, claims: SessionClaims, now: datetime) -> list[TrendPoint]:
        """Tickets created per day over the trend window, oldest first."""
        since = now - timedelta(days=TREND_WINDOW_DAYS)
        day = func.date(Ticket.created_at)
        rows = (
            db.query(day, func.count(Ticket.id))
            .filter(scope_clause(claims), Ticket.created_at >= since)
            .group_by(day)
            .order_by(day)
            .all()
        )
        return [TrendPoint(date=str(d), count=int(c)) for d, c in rows]

    @staticmethod
    def get_workload(db: Session, claims: SessionClaims, now: datetime) -> Workload:
        row = (
            db.query(
                func.count(Ticket.id),
                count_if(Ticket.status == TicketStatus.IN_PROGRESS.value),
                count_if(Ticket.status == TicketStatus.PENDING_APPROVAL.value),
                count_if(Ticket.status == TicketStatus.RESOLVED.value),
                count_if(Ticket.status == TicketStatus.CLOSED.value),
                count_if(overdue_clause(now)),
            )
            .filter(Ticket.assigned_to == claims.user_id)
            .one()
        )
        assigned, in_progress, pending, resolved, closed, overdue = (int(v or 0) for v in row)
        return Workload(
            assigned=assigned,
            in_progress=in_progress,
            pending_approval=pending,
            resolved=resolved,
            closed=closed,
            overdue=overdue,
        )

    @staticmethod
    def get_available(db: Session, claims: SessionClaims) -> tuple[list[Ticket], int]:
        available = and_(
            scope_clause(claims),
            Ticket.status == TicketStatus.OPEN.value,
            Ticket.assigned_to.is_(None),
        )
        total = db.query(func.count(Ticket.id)).filter(available).scalar() or 0
        tickets: list[Ticket] = (
            db.query(Ticket)
            .filter(available)
            .order_by(priority_weight.desc(), Ticket.created_at.asc(), Ticket.id.asc())
            .limit(DASHBOARD_LIST_LIMIT)
            .all()
        )
        return tickets, int(total)

    @staticmethod
    def get_user_stats(db: Session) -> UserStats:
        total, active = db.query(
            func.count(User.id), count_if(User.is_active.is_(True))
        ).one()
        by_role = db.query(User.role, func.count(User.id)).group_by(User.role).order_by(User.role)
        return UserStats(
            total_users=int(total or 0),
            active_users=int(active or 0),
            by_role=build_group_counts(by_role.all()),
        )

    @staticmethod
    def get_performance(db: Session, now: datetime) -> Performance:
        """Resolution throughput and average resolution time over the trend window.

        Resolution time is approximated as ``updated_at - created_at`` of
        tickets that are resolved or closed.
        """
        since = now - timedelta(days=TREND_WINDOW_DAYS)
        resolved, avg_days = (
            db.query(func.count(Ticket.id), func.avg(resolution_days(db)))
            .filter(
                Ticket.status.in_(FINISHED_STATUSES),
                Ticket.updated_at.is_not(None),
                Ticket.updated_at >= since,
            )
            .one()
        )
        return Performance(
            resolved_last_30_days=int(resolved or 0),
            avg_resolution_days=round(float(avg_days), 2) if avg_days is not None else None,
        )

    @staticmethod
    def get_top_assignees(db: Session) -> list[TopAssignee]:
        assigned = func.count(Ticket.id)
        resolved = count_if(Ticket.status.in_(FINISHED_STATUSES))
        rows = (
            db.query(User, assigned, resolved)
            .join(Ticket, Ticket.assigned_to == User.id)
            .group_by(User.id)
            .order_by(resolved.desc(), assigned.desc(), User.id)
            .limit(DEFAULT_RANKINGS_LIMIT)
            .all()
        )
        return [
            TopAssignee(
                id=str(user.id),
                name=user.name,
                role=user.role,
                department=user.department,
                assigned_tickets=int(n_assigned or 0),
                resolved_tickets=int(n_resolved or 0),
            )
            for user, n_assigned, n_resolved in rows
        ]

    @staticmethod
    def get_role_specific(db: Session, claims: SessionClaims, now: datetime) -> RoleSpecificData:
        if claims.role == UserRole.CHANNEL_PARTNER.value:
            return RoleSpecificData(
                ticket_trends=DashboardService.get_ticket_trends(db, claims, now)
            )
        if claims.role == UserRole.ASSIGNEE.value:
            available, available_count = DashboardService.get_available(db, claims)
            return RoleSpecificData(
                workload=DashboardService.get_workload(db, claims, now),
                available_tickets=build_ticket_list(available),
                available_count=available_count,
            )
        if sees_all_tickets(claims.role):
            return RoleSpecificData(
                user_stats=DashboardService.get_user_stats(db),
                performance=DashboardService.get_performance(db, now),
                top_assignees=DashboardService.get_top_assignees(db),
            )
        return RoleSpecificData()

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @staticmethod
    def get_dashboard(db: Session, claims: SessionClaims) -> dict[str, Any]:
        """Get the complete dashboard for the caller.

        Args:
            db: Database session.
            claims: The caller; drives scope and the role-specific block.

        Returns:
            Keyword arguments for DashboardResponse, minus the user block.
        """
        now = utcnow()
        return {
            "user_role": claims.role,
            "detailed_stats": DashboardService.get_detailed_stats(db, claims, now),
            "category_breakdown": DashboardService.get_breakdown(db, claims, Ticket.category),
            "priority_breakdown": DashboardService.get_breakdown(db, claims, Ticket.priority),
            "status_breakdown": DashboardService.get_breakdown(db, claims, Ticket.status),
            "recent_tickets": build_ticket_list(
                DashboardService.get_recent_tickets(db, claims, now)
            ),
            "overdue_tickets": build_ticket_list(
                DashboardService.get_overdue_tickets(db, claims, now)
            ),
            "high_priority_tickets": build_ticket_list(
                DashboardService.get_high_priority_tickets(db, claims)
            ),
            "role_specific_data": DashboardService.get_role_specific(db, claims, now),
            "last_updated": now,
        }

    @staticmethod
    def get_compact(db: Session, claims: SessionClaims) -> dict[str, Any]:
        now = utcnow()
        detailed = DashboardService.get_detailed_stats(db, claims, now)
        return {
            "stats": CompactStats(
                total=detailed.total,
                open=detailed.open,
                in_progress=detailed.in_progress,
                resolved=detailed.resolved,
                closed=detailed.closed,
                urgent=detailed.urgent,
                overdue=detailed.overdue,
            ),
            "category_breakdown": DashboardService.get_breakdown(db, claims, Ticket.category),
            "priority_breakdown": DashboardService.get_breakdown(db, claims, Ticket.priority),
            "recent_tickets": build_ticket_list(
                DashboardService.get_recent_tickets(db, claims, now)
            ),
            "overdue_tickets": build_ticket_list(
                DashboardService.get_overdue_tickets(db, claims, now)
            ),
        }
