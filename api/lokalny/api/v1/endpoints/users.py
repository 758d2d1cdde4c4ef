"""
User endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
import logging

from lokalny.core.database import get_session
from lokalny.schemas.user import CreateUserRequest, UserResponse, DeleteUserDataResponse
from lokalny.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    session: Session = Depends(get_session)
):
    """Create a user."""
    return UserResponse.model_validate(user_service.create_user(session, request.name))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    session: Session = Depends(get_session)
):
    """Get a user by id."""
    return UserResponse.model_validate(user_service.get_user(session, user_id))


@router.delete("/{user_id}/data", response_model=DeleteUserDataResponse)
async def delete_user_data(
    user_id: int,
    session: Session = Depends(get_session)
):
    """
    Delete all learning data of a user (answers, review schedule, progression).

    The user itself is kept.
    """
    counts = user_service.delete_user_data(session, user_id)
    return DeleteUserDataResponse(**counts)
