from app.core.schemas import CamelModel


class AssigneeOption(CamelModel):
    """A pick-list entry: either a concrete user or a role-based target."""

    id: str
    name: str
    email: str | None = None
    role: str
    department: str | None = None
    location: str | None = None
    is_role_based: bool = False
    assigned_tickets: int = 0
    active_tickets: int = 0


class AssigneeListResponse(CamelModel):
    success: bool = True
    user_role: str
    assignees: list[AssigneeOption]
