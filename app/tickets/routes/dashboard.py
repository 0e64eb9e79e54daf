from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.dependencies import get_current_user
from app.auth.models.user import User
from app.db.session import get_db
from app.tickets.schemas.dashboard import DashboardResponse, DashboardStatsResponse
from app.tickets.services.dashboard_service import DashboardService
from app.tickets.services.response_builder import build_user_response

router = APIRouter()


@router.get("", response_model=DashboardResponse)
def get_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    claims = SessionClaims.from_user(current_user)
    return DashboardResponse(
        user=build_user_response(current_user),
        **DashboardService.get_dashboard(db, claims),
    )


@router.get("/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DashboardStatsResponse:
    claims = SessionClaims.from_user(current_user)
    return DashboardStatsResponse(**DashboardService.get_compact(db, claims))
