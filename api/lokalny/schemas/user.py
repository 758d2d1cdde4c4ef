from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class CreateUserRequest(BaseModel):
    """Create user request schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")


class UserResponse(BaseModel):
    """User response schema."""
    id: int
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeleteUserDataResponse(BaseModel):
    """Counts of learning data removed for a user."""
    exercise_results_deleted: int
    card_progress_deleted: int
    progression_sessions_deleted: int
    progression_deleted: int
