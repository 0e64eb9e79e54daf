from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.core.datetime_utils import utcnow
from app.tickets.models.ticket import Ticket
from app.tickets.services.dashboard_service import DashboardService
from tests.utils.factories import create_ticket_factory
from tests.utils.helpers import create_auth_headers


class TestDashboardEndpoint:
    @pytest.mark.asyncio
    async def test_channel_partner_dashboard_is_scoped(
        self, test_client, db_session, channel_partner, other_partner, partner_token
    ):
        create_ticket_factory(db_session, channel_partner, priority="urgent", category="billing")
        create_ticket_factory(
            db_session,
            channel_partner,
            status="in_progress",
            due_date=utcnow() - timedelta(days=2),
        )
        create_ticket_factory(db_session, other_partner)

        response = await test_client.get(
            "/api/v1/dashboard", headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["userRole"] == "channel_partner"
        assert data["user"]["id"] == str(channel_partner.id)

        stats = data["detailedStats"]
        assert stats["total"] == 2
        assert stats["open"] == 1
        assert stats["inProgress"] == 1
        assert stats["urgent"] == 1
        assert stats["createdByMe"] == 2
        assert stats["overdue"] == 1

        assert len(data["recentTickets"]) == 2
        assert len(data["overdueTickets"]) == 1
        assert [t["priority"] for t in data["highPriorityTickets"]] == ["urgent"]
        assert data["roleSpecificData"]["ticketTrends"][0]["count"] == 2
        assert data["roleSpecificData"]["userStats"] is None

    @pytest.mark.asyncio
    async def test_assignee_dashboard_has_workload_and_available(
        self, test_client, db_session, channel_partner, assignee_user, assignee_token
    ):
        create_ticket_factory(
            db_session, channel_partner, assigned_to=assignee_user, status="in_progress"
        )
        create_ticket_factory(db_session, channel_partner, priority="low")
        create_ticket_factory(db_session, channel_partner, priority="urgent")

        response = await test_client.get(
            "/api/v1/dashboard", headers=create_auth_headers(assignee_token)
        )

        role_data = response.json()["roleSpecificData"]
        assert role_data["workload"]["assigned"] == 1
        assert role_data["workload"]["inProgress"] == 1
        assert role_data["availableCount"] == 2
        assert [t["priority"] for t in role_data["availableTickets"]] == ["urgent", "low"]

    @pytest.mark.asyncio
    async def test_head_office_dashboard_has_org_wide_blocks(
        self,
        test_client,
        db_session,
        channel_partner,
        technical_user,
        head_office_token,
    ):
        now = utcnow()
        create_ticket_factory(
            db_session,
            channel_partner,
            assigned_to=technical_user,
            status="resolved",
            created_at=now - timedelta(days=3),
            updated_at=now - timedelta(days=1),
        )
        create_ticket_factory(db_session, channel_partner, assigned_to=technical_user)

        response = await test_client.get(
            "/api/v1/dashboard", headers=create_auth_headers(head_office_token)
        )

        role_data = response.json()["roleSpecificData"]
        assert role_data["userStats"]["totalUsers"] == 3
        assert role_data["performance"]["resolvedLast30Days"] == 1
        assert role_data["performance"]["avgResolutionDays"] == pytest.approx(2.0, abs=0.01)
        top = role_data["topAssignees"][0]
        assert top["id"] == str(technical_user.id)
        assert top["assignedTickets"] == 2
        assert top["resolvedTickets"] == 1

    @pytest.mark.asyncio
    async def test_compact_stats(self, test_client, db_session, channel_partner, partner_token):
        create_ticket_factory(db_session, channel_partner, status="closed")

        response = await test_client.get(
            "/api/v1/dashboard/stats", headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["total"] == 1
        assert data["stats"]["closed"] == 1
        assert data["categoryBreakdown"] == [{"key": "technical", "count": 1}]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, test_client):
        response = await test_client.get("/api/v1/dashboard")

        assert response.status_code == 401


class TestBreakdowns:
    def test_status_breakdown_counts_only_visible_tickets(
        self, db_session: Session, channel_partner, other_partner
    ):
        create_ticket_factory(db_session, channel_partner)
        create_ticket_factory(db_session, channel_partner)
        create_ticket_factory(db_session, channel_partner, status="closed")
        create_ticket_factory(db_session, other_partner, status="closed")

        claims = SessionClaims.from_user(channel_partner)
        breakdown = DashboardService.get_breakdown(db_session, claims, Ticket.status)

        assert [(g.key, g.count) for g in breakdown] == [("open", 2), ("closed", 1)]
