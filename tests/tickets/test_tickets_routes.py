import pytest

from app.tickets.models.ticket import Ticket
from tests.utils.factories import create_comment_factory, create_ticket_factory
from tests.utils.helpers import assert_ticket_response_valid, auth_headers_for, create_auth_headers


def ticket_payload(**overrides):
    payload = {
        "title": "Cannot connect to VPN",
        "description": "Error 809 since this morning",
        "category": "technical",
        "priority": "high",
    }
    payload.update(overrides)
    return payload


class TestCreateTicketEndpoint:
    @pytest.mark.asyncio
    async def test_should_create_open_ticket_for_channel_partner(
        self, test_client, channel_partner, partner_token
    ):
        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(tags=["vpn", "remote"], dueDate="2030-01-15T10:00:00Z"),
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 201
        ticket = response.json()["ticket"]
        assert_ticket_response_valid(ticket)
        assert ticket["status"] == "open"
        assert ticket["createdBy"] == str(channel_partner.id)
        assert ticket["tags"] == ["vpn", "remote"]
        assert ticket["assignedTo"] is None
        assert ticket["dueDate"] == "2030-01-15T10:00:00+00:00"

    @pytest.mark.asyncio
    async def test_ticket_is_invisible_to_another_channel_partner(
        self, test_client, partner_token, other_partner
    ):
        created = await test_client.post(
            "/api/v1/tickets", json=ticket_payload(), headers=create_auth_headers(partner_token)
        )
        ticket_id = created.json()["ticket"]["id"]
        other_headers = auth_headers_for(other_partner)

        listing = await test_client.get("/api/v1/tickets", headers=other_headers)
        detail = await test_client.get(f"/api/v1/tickets/{ticket_id}", headers=other_headers)

        assert listing.json()["tickets"] == []
        assert detail.status_code == 403

    @pytest.mark.asyncio
    async def test_channel_partner_can_assign_to_role(self, test_client, partner_token):
        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(assignedTo="technical"),
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 201
        ticket = response.json()["ticket"]
        assert ticket["assignedRole"] == "technical"
        assert ticket["assignedTo"] is None

    @pytest.mark.asyncio
    async def test_channel_partner_cannot_assign_to_user(
        self, test_client, db_session, partner_token, assignee_user
    ):
        before = db_session.query(Ticket).count()

        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(assignedTo=str(assignee_user.id)),
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 400
        assert db_session.query(Ticket).count() == before

    @pytest.mark.asyncio
    async def test_head_office_can_assign_to_eligible_user(
        self, test_client, head_office_token, technical_user
    ):
        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(assignedTo=str(technical_user.id)),
            headers=create_auth_headers(head_office_token),
        )

        assert response.status_code == 201
        ticket = response.json()["ticket"]
        assert ticket["assignedTo"] == str(technical_user.id)
        assert ticket["assigneeName"] == "Tomasz Tech"

    @pytest.mark.asyncio
    async def test_should_return_400_when_assignee_role_ineligible(
        self, test_client, db_session, head_office_token, channel_partner
    ):
        before = db_session.query(Ticket).count()

        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(assignedTo=str(channel_partner.id)),
            headers=create_auth_headers(head_office_token),
        )

        assert response.status_code == 400
        assert "can only be assigned" in response.json()["error"]
        assert db_session.query(Ticket).count() == before

    @pytest.mark.asyncio
    async def test_should_return_400_for_invalid_priority(self, test_client, partner_token):
        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(priority="critical"),
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("priority:")

    @pytest.mark.asyncio
    async def test_should_return_400_for_invalid_due_date(self, test_client, partner_token):
        response = await test_client.post(
            "/api/v1/tickets",
            json=ticket_payload(dueDate="next tuesday"),
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid due date format"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token_fixture", ["assignee_token", "technical_token"])
    async def test_should_return_403_without_create_capability(
        self, test_client, request, token_fixture
    ):
        token = request.getfixturevalue(token_fixture)

        response = await test_client.post(
            "/api/v1/tickets", json=ticket_payload(), headers=create_auth_headers(token)
        )

        assert response.status_code == 403


class TestListTicketsEndpoint:
    @pytest.mark.asyncio
    async def test_assignee_sees_assigned_and_open_tickets(
        self,
        test_client,
        db_session,
        channel_partner,
        assignee_user,
        technical_user,
        assignee_token,
    ):
        mine = create_ticket_factory(
            db_session, channel_partner, assigned_to=assignee_user, status="in_progress"
        )
        open_ = create_ticket_factory(db_session, channel_partner)
        create_ticket_factory(
            db_session, channel_partner, assigned_to=technical_user, status="in_progress"
        )

        response = await test_client.get(
            "/api/v1/tickets", headers=create_auth_headers(assignee_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert {t["id"] for t in data["tickets"]} == {str(mine.id), str(open_.id)}
        assert data["total"] == 2

    @pytest.mark.asyncio
    async def test_filters_by_status_query_param(
        self, test_client, db_session, channel_partner, technical_token
    ):
        closed = create_ticket_factory(db_session, channel_partner, status="closed")
        create_ticket_factory(db_session, channel_partner)

        response = await test_client.get(
            "/api/v1/tickets?status=closed", headers=create_auth_headers(technical_token)
        )

        assert [t["id"] for t in response.json()["tickets"]] == [str(closed.id)]

    @pytest.mark.asyncio
    async def test_should_return_400_for_unknown_status(self, test_client, technical_token):
        response = await test_client.get(
            "/api/v1/tickets?status=lost", headers=create_auth_headers(technical_token)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_should_return_401_without_token(self, test_client):
        response = await test_client.get("/api/v1/tickets")

        assert response.status_code == 401


class TestGetTicketEndpoint:
    @pytest.mark.asyncio
    async def test_should_return_ticket_with_comments(
        self, test_client, db_session, channel_partner, technical_user, partner_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner)
        create_comment_factory(db_session, ticket, channel_partner, content="Any update?")
        create_comment_factory(
            db_session, ticket, technical_user, content="Escalated", is_internal=True
        )

        response = await test_client.get(
            f"/api/v1/tickets/{ticket.id}", headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ticket"]["id"] == str(ticket.id)
        assert [c["content"] for c in data["comments"]] == ["Any update?", "Escalated"]
        assert data["comments"][1]["isInternal"] is True

    @pytest.mark.asyncio
    async def test_should_return_404_for_missing_ticket(self, test_client, technical_token):
        response = await test_client.get(
            "/api/v1/tickets/424242", headers=create_auth_headers(technical_token)
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Ticket not found"}

    @pytest.mark.asyncio
    async def test_developer_support_cannot_view_someone_elses_assigned_ticket(
        self, test_client, db_session, channel_partner, assignee_user, developer_token
    ):
        ticket = create_ticket_factory(
            db_session, channel_partner, assigned_to=assignee_user, status="in_progress"
        )

        response = await test_client.get(
            f"/api/v1/tickets/{ticket.id}", headers=create_auth_headers(developer_token)
        )

        assert response.status_code == 403


class TestUpdateTicketEndpoint:
    @pytest.mark.asyncio
    async def test_creator_can_update_fields(
        self, test_client, db_session, channel_partner, partner_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner, tags="old")

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}",
            json={"title": "Updated title", "priority": "urgent", "tags": ["a", "b"]},
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 200
        data = response.json()["ticket"]
        assert data["title"] == "Updated title"
        assert data["priority"] == "urgent"
        assert data["tags"] == ["a", "b"]
        assert data["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_status_transitions_are_free_form(
        self, test_client, db_session, channel_partner, technical_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner, status="closed")

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}",
            json={"status": "open"},
            headers=create_auth_headers(technical_token),
        )

        assert response.status_code == 200
        assert response.json()["ticket"]["status"] == "open"

    @pytest.mark.asyncio
    async def test_channel_partner_cannot_edit_foreign_ticket(
        self, test_client, db_session, other_partner, partner_token
    ):
        ticket = create_ticket_factory(db_session, other_partner, title="Original")

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}",
            json={"title": "Hijacked"},
            headers=create_auth_headers(partner_token),
        )

        assert response.status_code == 403
        db_session.refresh(ticket)
        assert ticket.title == "Original"

    @pytest.mark.asyncio
    async def test_reassigning_to_ineligible_user_leaves_row_untouched(
        self, test_client, db_session, channel_partner, assignee_user, technical_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner, assigned_to=assignee_user)

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}",
            json={"assignedTo": str(channel_partner.id)},
            headers=create_auth_headers(technical_token),
        )

        assert response.status_code == 400
        db_session.refresh(ticket)
        assert ticket.assigned_to == assignee_user.id

    @pytest.mark.asyncio
    async def test_should_return_400_when_nothing_to_update(
        self, test_client, db_session, channel_partner, partner_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner)

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}", json={}, headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 400
        assert response.json() == {"error": "No fields to update"}

    @pytest.mark.asyncio
    async def test_assigning_user_clears_role_hint(
        self, test_client, db_session, channel_partner, technical_user, head_office_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner, assigned_role="technical")

        response = await test_client.put(
            f"/api/v1/tickets/{ticket.id}",
            json={"assignedTo": str(technical_user.id)},
            headers=create_auth_headers(head_office_token),
        )

        assert response.status_code == 200
        data = response.json()["ticket"]
        assert data["assignedTo"] == str(technical_user.id)
        assert data["assignedRole"] is None


class TestDeleteTicketEndpoint:
    @pytest.mark.asyncio
    async def test_technical_can_delete_ticket_and_its_comments(
        self, test_client, db_session, channel_partner, technical_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner)
        create_comment_factory(db_session, ticket, channel_partner)
        ticket_id = ticket.id

        response = await test_client.delete(
            f"/api/v1/tickets/{ticket_id}", headers=create_auth_headers(technical_token)
        )

        assert response.status_code == 200
        assert db_session.query(Ticket).filter(Ticket.id == ticket_id).first() is None

    @pytest.mark.asyncio
    async def test_channel_partner_cannot_delete_own_ticket(
        self, test_client, db_session, channel_partner, partner_token
    ):
        ticket = create_ticket_factory(db_session, channel_partner)

        response = await test_client.delete(
            f"/api/v1/tickets/{ticket.id}", headers=create_auth_headers(partner_token)
        )

        assert response.status_code == 403
        assert db_session.query(Ticket).filter(Ticket.id == ticket.id).first() is not None
