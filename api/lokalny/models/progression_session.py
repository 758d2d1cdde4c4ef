"""
ProgressionSession model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint
from typing import Optional
from datetime import date, datetime

from lokalny.utils.time_utils import utcnow


class ProgressionSession(SQLModel, table=True):
    """ProgressionSession table - append-only audit row per completed session."""
    __tablename__ = "progression_session"
    __table_args__ = (
        UniqueConstraint("user_id", "session_key", name="uq_progression_session_user_key"),
        CheckConstraint(
            "starting_difficulty >= 0 AND starting_difficulty <= 100",
            name="progression_session_starting_difficulty_range"
        ),
        CheckConstraint(
            "ending_difficulty >= 0 AND ending_difficulty <= 100",
            name="progression_session_ending_difficulty_range"
        ),
        CheckConstraint("xp_earned >= 0", name="progression_session_xp_non_negative"),
        CheckConstraint(
            "correct_answers >= 0 AND correct_answers <= questions_answered",
            name="progression_session_correct_le_answered"
        ),
        CheckConstraint(
            "session_accuracy >= 0 AND session_accuracy <= 100",
            name="progression_session_accuracy_range"
        ),
        CheckConstraint("difficulty_adjustments >= 0", name="progression_session_adjustments_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    session_key: Optional[str] = Field(default=None, max_length=64)  # Client session identifier
    session_date: date
    starting_difficulty: int
    ending_difficulty: int
    xp_earned: int
    questions_answered: int
    correct_answers: int
    session_accuracy: float  # Percentage 0-100
    difficulty_adjustments: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
