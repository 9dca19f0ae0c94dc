"""User lifecycle routes."""
from __future__ import annotations

from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from nous.api.schemas.users import UserCreateRequest, UserResponse
from nous.db.deps import get_db
from nous.observability.metrics import log_metric
from nous.observability.tracing import trace
from nous.services.user_service import delete_user, get_or_create_user

router = APIRouter()


@router.post("/users", response_model=UserResponse, tags=["users"])
def create_user(payload: UserCreateRequest, request: Request, db: Session = Depends(get_db)) -> UserResponse:
    """Create a user (and its emotional state) or return the existing one."""
    request_id = getattr(request.state, "request_id", None)
    user_id = payload.user_id or uuid4()
    with trace("users.create", metadata={"user_id": str(user_id)}, user_id=str(user_id), request_id=request_id):
        user = get_or_create_user(db, user_id)
        db.refresh(user)
    log_metric("users.create.success", 1, metadata={"user_id": str(user_id)})
    return UserResponse(user_id=user.id, created_at=user.created_at, request_id=request_id or "")


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["users"])
def delete_user_endpoint(user_id: UUID, request: Request, db: Session = Depends(get_db)) -> Response:
    request_id = getattr(request.state, "request_id", None)
    with trace("users.delete", metadata={"user_id": str(user_id)}, user_id=str(user_id), request_id=request_id):
        try:
            delete_user(db, user_id)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    log_metric("users.delete.success", 1, metadata={"user_id": str(user_id)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
