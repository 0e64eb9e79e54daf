from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth.claims import SessionClaims
from app.auth.dependencies import require_capability
from app.auth.schemas.user import (
    UserCreate,
    UserListResponse,
    UserMutationResponse,
    UserUpdate,
)
from app.auth.services.user_service import UserService
from app.core.schemas import MessageResponse
from app.db.session import get_db
from app.tickets.policy import Capability
from app.tickets.services.response_builder import build_user_response

router = APIRouter()


@router.get("", response_model=UserListResponse)
def list_users(
    role: str | None = Query(None),
    department: str | None = Query(None),
    location: str | None = Query(None),
    _claims: SessionClaims = Depends(require_capability(Capability.VIEW_ALL_USERS)),
    db: Session = Depends(get_db),
) -> UserListResponse:
    return UserService(db).list_users(role=role, department=department, location=location)


@router.post("", response_model=UserMutationResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    claims: SessionClaims = Depends(require_capability(Capability.CREATE_USER)),
    db: Session = Depends(get_db),
) -> UserMutationResponse:
    user = UserService(db).create_from_request(data, actor_id=claims.user_id)
    return UserMutationResponse(message="User created successfully", user=build_user_response(user))


@router.put("/{user_id}", response_model=UserMutationResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    claims: SessionClaims = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> UserMutationResponse:
    user = UserService(db).update_user(user_id, data, actor_id=claims.user_id)
    return UserMutationResponse(message="User updated successfully", user=build_user_response(user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    claims: SessionClaims = Depends(require_capability(Capability.MANAGE_USERS)),
    db: Session = Depends(get_db),
) -> MessageResponse:
    UserService(db).delete_user(user_id, actor_id=claims.user_id)
    return MessageResponse(message="User deleted successfully")
