from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.dependencies import require_capability
from app.db.session import get_db
from app.tickets.policy import Capability
from app.tickets.schemas.assignee import AssigneeListResponse
from app.tickets.services.assignee_service import AssigneeService

router = APIRouter()


@router.get("", response_model=AssigneeListResponse)
def list_assignees(
    claims: SessionClaims = Depends(require_capability(Capability.VIEW_ASSIGNEES)),
    db: Session = Depends(get_db),
) -> AssigneeListResponse:
    return AssigneeListResponse(
        user_role=claims.role, assignees=AssigneeService(db).list_options(claims)
    )
