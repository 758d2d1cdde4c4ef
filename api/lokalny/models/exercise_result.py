"""
ExerciseResult model.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, Column, DateTime, String as SAString
from typing import Optional
from datetime import datetime

from lokalny.models.enums import QuestionType
from lokalny.utils.time_utils import utcnow


class ExerciseResult(SQLModel, table=True):
    """ExerciseResult table - append-only log of every answered question."""
    __tablename__ = "exercise_result"
    __table_args__ = (
        CheckConstraint("hints_used >= 0", name="exercise_result_hints_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    card_id: int = Field(foreign_key="card.id", index=True)
    session_key: Optional[str] = Field(default=None, max_length=64, index=True)
    question_type: QuestionType = Field(sa_column=Column(SAString(50), nullable=False))
    correct: bool
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    time_taken_ms: Optional[int] = None
    hints_used: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
