"""
UserProgression model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, DateTime
from typing import Optional
from datetime import date, datetime

from lokalny.utils.time_utils import utcnow


class UserProgression(SQLModel, table=True):
    """UserProgression table - XP, level, streak and adaptive difficulty band of a user.

    Written only by the progression engine, once per completed session.
    """
    __tablename__ = "user_progression"
    __table_args__ = (
        CheckConstraint("level >= 1 AND level <= 50", name="user_progression_level_range"),
        CheckConstraint("xp >= 0", name="user_progression_xp_non_negative"),
        CheckConstraint("streak >= 0", name="user_progression_streak_non_negative"),
        CheckConstraint(
            "current_difficulty >= 0 AND current_difficulty <= 100",
            name="user_progression_difficulty_range"
        ),
        CheckConstraint(
            "total_sessions >= 0 AND total_correct_answers >= 0 AND total_questions_answered >= 0",
            name="user_progression_totals_non_negative"
        ),
        CheckConstraint(
            "total_correct_answers <= total_questions_answered",
            name="user_progression_correct_le_answered"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True, index=True)
    level: int = Field(default=1)
    xp: int = Field(default=0)
    streak: int = Field(default=0)
    current_difficulty: int = Field(default=10)
    total_sessions: int = Field(default=0)
    total_correct_answers: int = Field(default=0)
    total_questions_answered: int = Field(default=0)
    last_session_date: Optional[date] = None
    level_up_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    version: int = Field(default=1)
