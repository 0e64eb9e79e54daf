"""
Database base module - imports all models for Alembic migration detection.

While the imports appear unused, they register every table on
``Base.metadata`` before Alembic or ``create_all`` inspects it.
"""

from app.auth.models.user import User
from app.db.session import Base
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import Ticket

# Export all models for Alembic
__all__ = [
    "Base",
    "User",
    "Ticket",
    "TicketComment",
]
