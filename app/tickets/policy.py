"""Role policy table and ticket access guard.

Every role-dependent decision is answered from ``ROLE_POLICIES``: which
tickets a role can see (its scope) and which capabilities it holds. The
SQL form of the scope lives in ``services.query_builder.scope_clause``;
``scope_allows`` below is its in-memory mirror and the two must agree.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass

from app.auth.claims import SessionClaims
from app.auth.models.user import UserRole
from app.core.exceptions import ForbiddenError
from app.tickets.models.ticket import Ticket, TicketStatus


class TicketScope(str, enum.Enum):
    OWN = "own"
    ASSIGNED_OR_OPEN = "assigned_or_open"
    ALL = "all"
    INVOLVED_OR_AVAILABLE = "involved_or_available"


class Capability(str, enum.Enum):
    CREATE_TICKET = "create_ticket"
    DELETE_TICKET = "delete_ticket"
    ASSIGN_TICKETS = "assign_tickets"
    TAKE_TICKET = "take_ticket"
    VIEW_ALL_USERS = "view_all_users"
    SEARCH_USERS = "search_users"
    CREATE_USER = "create_user"
    MANAGE_USERS = "manage_users"
    VIEW_ASSIGNEES = "view_assignees"


class TicketAction(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"
    COMMENT = "comment"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class RolePolicy:
    scope: TicketScope
    capabilities: frozenset[Capability]

    def allows(self, capability: Capability) -> bool:
        return capability in self.capabilities


# Roles a ticket may be assigned to (by user id) or taken by
ASSIGNABLE_ROLES = frozenset(
    {
        UserRole.ASSIGNEE.value,
        UserRole.TECHNICAL.value,
        UserRole.DEVELOPER_SUPPORT.value,
        UserRole.HEAD_OFFICE.value,
    }
)

# Roles a ticket may be assigned to as a group
ROLE_ASSIGNMENT_TARGETS = (UserRole.TECHNICAL.value, UserRole.ASSIGNEE.value)

ROLE_POLICIES: dict[str, RolePolicy] = {
    UserRole.CHANNEL_PARTNER.value: RolePolicy(
        scope=TicketScope.OWN,
        capabilities=frozenset({Capability.CREATE_TICKET, Capability.VIEW_ASSIGNEES}),
    ),
    UserRole.ASSIGNEE.value: RolePolicy(
        scope=TicketScope.ASSIGNED_OR_OPEN,
        capabilities=frozenset(
            {Capability.ASSIGN_TICKETS, Capability.TAKE_TICKET, Capability.VIEW_ASSIGNEES}
        ),
    ),
    UserRole.HEAD_OFFICE.value: RolePolicy(
        scope=TicketScope.ALL,
        capabilities=frozenset(
            {
                Capability.CREATE_TICKET,
                Capability.DELETE_TICKET,
                Capability.ASSIGN_TICKETS,
                Capability.TAKE_TICKET,
                Capability.VIEW_ALL_USERS,
                Capability.SEARCH_USERS,
                Capability.CREATE_USER,
                Capability.MANAGE_USERS,
                Capability.VIEW_ASSIGNEES,
            }
        ),
    ),
    UserRole.TECHNICAL.value: RolePolicy(
        scope=TicketScope.ALL,
        capabilities=frozenset(
            {
                Capability.DELETE_TICKET,
                Capability.TAKE_TICKET,
                Capability.VIEW_ALL_USERS,
                Capability.SEARCH_USERS,
                Capability.CREATE_USER,
                Capability.VIEW_ASSIGNEES,
            }
        ),
    ),
    UserRole.DEVELOPER_SUPPORT.value: RolePolicy(
        scope=TicketScope.INVOLVED_OR_AVAILABLE,
        capabilities=frozenset({Capability.TAKE_TICKET}),
    ),
}


def policy_for(role: str) -> RolePolicy:
    policy = ROLE_POLICIES.get(role)
    if policy is None:
        raise ForbiddenError(f"Unknown role: {role}")
    return policy


def has_capability(role: str, capability: Capability) -> bool:
    policy = ROLE_POLICIES.get(role)
    return policy is not None and policy.allows(capability)


def require_capability_for(claims: SessionClaims, capability: Capability) -> None:
    if not has_capability(claims.role, capability):
        raise ForbiddenError("Insufficient permissions")


def sees_all_tickets(role: str) -> bool:
    return policy_for(role).scope is TicketScope.ALL


def _is_open_and_unassigned(ticket: Ticket) -> bool:
    return ticket.status == TicketStatus.OPEN.value and ticket.assigned_to is None


def _is_involved(claims: SessionClaims, ticket: Ticket) -> bool:
    return claims.user_id in (ticket.created_by, ticket.assigned_to)


def scope_allows(claims: SessionClaims, ticket: Ticket) -> bool:
    """Whether ``ticket`` falls inside the caller's list visibility scope."""
    scope = policy_for(claims.role).scope
    if scope is TicketScope.ALL:
        return True
    if scope is TicketScope.OWN:
        return ticket.created_by == claims.user_id
    if scope is TicketScope.ASSIGNED_OR_OPEN:
        return ticket.assigned_to == claims.user_id or ticket.status == TicketStatus.OPEN.value
    return _is_involved(claims, ticket) or _is_open_and_unassigned(ticket)


def _can_view(claims: SessionClaims, ticket: Ticket) -> bool:
    if claims.role == UserRole.CHANNEL_PARTNER.value:
        return ticket.created_by == claims.user_id
    return _is_involved(claims, ticket) or _is_open_and_unassigned(ticket)


def _can_edit(claims: SessionClaims, ticket: Ticket) -> bool:
    return _is_involved(claims, ticket)


def _can_delete(claims: SessionClaims, ticket: Ticket) -> bool:
    return False


def _can_transfer(claims: SessionClaims, ticket: Ticket) -> bool:
    if claims.role == UserRole.ASSIGNEE.value:
        return True
    return _is_involved(claims, ticket)


# Rules for roles without ALL scope; ALL-scope roles pass every action
_ACTION_RULES: dict[TicketAction, Callable[[SessionClaims, Ticket], bool]] = {
    TicketAction.VIEW: _can_view,
    TicketAction.EDIT: _can_edit,
    TicketAction.DELETE: _can_delete,
    TicketAction.COMMENT: _can_edit,
    TicketAction.TRANSFER: _can_transfer,
}


def is_action_allowed(claims: SessionClaims, action: TicketAction, ticket: Ticket) -> bool:
    if sees_all_tickets(claims.role):
        return True
    return _ACTION_RULES[action](claims, ticket)


def authorize_ticket_action(claims: SessionClaims, action: TicketAction, ticket: Ticket) -> None:
    """Raise ForbiddenError unless the caller may perform ``action`` on ``ticket``."""
    if not is_action_allowed(claims, action, ticket):
        raise ForbiddenError(f"You do not have permission to {action.value} this ticket")
