from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import (
    AssignedToRole,
    AssignedToUser,
    Assignment,
    Ticket,
    TicketCategory,
    TicketPriority,
    TicketStatus,
    Unassigned,
)

__all__ = [
    "Ticket",
    "TicketComment",
    "TicketStatus",
    "TicketPriority",
    "TicketCategory",
    "Assignment",
    "AssignedToUser",
    "AssignedToRole",
    "Unassigned",
]
