from datetime import datetime

from faker import Faker
from sqlalchemy.orm import Session

from app.auth.models.user import User
from app.core.datetime_utils import utcnow
from app.core.security import get_password_hash
from app.tickets.models.comment import TicketComment
from app.tickets.models.ticket import Ticket

fake = Faker()


def create_user_factory(
    db_session: Session,
    email: str | None = None,
    password: str = "testpass123",
    name: str | None = None,
    role: str = "channel_partner",
    department: str | None = None,
    location: str | None = None,
    is_active: bool = True,
) -> User:
    """
    Factory function to create test users.

    Args:
        db_session: Database session
        email: User email (generates random if None)
        password: Plain text password
        name: User name (generates random if None)
        role: One of the five helpdesk roles
        department: Optional department
        location: Optional location
        is_active: Whether user is active

    Returns:
        Created User instance
    """
    user = User(
        email=email or f"{fake.user_name()}.{fake.random_number(digits=6)}@example.com",
        hashed_password=get_password_hash(password),
        name=name or fake.name(),
        role=role,
        department=department,
        location=location,
        is_active=is_active,
        created_at=utcnow(),
    )

    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)

    return user


def create_ticket_factory(
    db_session: Session,
    creator: User,
    title: str | None = None,
    description: str | None = None,
    category: str = "technical",
    priority: str = "medium",
    status: str = "open",
    assigned_to: User | None = None,
    assigned_role: str | None = None,
    tags: str | None = None,
    due_date: datetime | None = None,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> Ticket:
    """Create a ticket row directly, bypassing service validation."""
    ticket = Ticket(
        title=title or fake.sentence(nb_words=5).rstrip("."),
        description=description or fake.paragraph(nb_sentences=2),
        category=category,
        priority=priority,
        status=status,
        created_by=creator.id,
        assigned_to=assigned_to.id if assigned_to else None,
        assigned_role=assigned_role,
        tags=tags,
        due_date=due_date,
        created_at=created_at or utcnow(),
        updated_at=updated_at,
    )

    db_session.add(ticket)
    db_session.commit()
    db_session.refresh(ticket)

    return ticket


def create_comment_factory(
    db_session: Session,
    ticket: Ticket,
    author: User,
    content: str | None = None,
    is_internal: bool = False,
) -> TicketComment:
    comment = TicketComment(
        ticket_id=ticket.id,
        user_id=author.id,
        content=content or fake.sentence(),
        is_internal=is_internal,
        created_at=utcnow(),
    )

    db_session.add(comment)
    db_session.commit()
    db_session.refresh(comment)

    return comment
