"""
User model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from typing import Optional
from datetime import datetime

from lokalny.utils.time_utils import utcnow


class User(SQLModel, table=True):
    """User table - learners are created by the (external) auth layer."""
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
