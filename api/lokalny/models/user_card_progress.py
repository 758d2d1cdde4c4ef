"""
UserCardProgress model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint, Column, DateTime, String as SAString, UniqueConstraint
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from lokalny.models.enums import MasteryLevel
from lokalny.utils.time_utils import utcnow

if TYPE_CHECKING:
    from lokalny.models.card import Card


class UserCardProgress(SQLModel, table=True):
    """UserCardProgress table - spaced-repetition state of one (user, card) pair.

    Written only by the scheduler. ``version`` is bumped on every update and
    checked by the writer to detect concurrent answers for the same pair.
    """
    __tablename__ = "user_card_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "card_id", name="uq_user_card_progress_user_card"),
        CheckConstraint("next_review >= last_reviewed", name="user_card_progress_next_after_last"),
        CheckConstraint('"interval" >= 0', name="user_card_progress_interval_non_negative"),
        CheckConstraint("ease_factor >= 1.3", name="user_card_progress_ease_floor"),
        CheckConstraint("repetitions >= 0", name="user_card_progress_repetitions_non_negative"),
        CheckConstraint("correct_count >= 0 AND incorrect_count >= 0", name="user_card_progress_counts_non_negative"),
        CheckConstraint(
            "timed_answer_count >= 0 AND timed_answer_count <= correct_count + incorrect_count",
            name="user_card_progress_timed_count_range"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    card_id: int = Field(foreign_key="card.id", index=True)
    last_reviewed: datetime = Field(sa_type=DateTime)
    next_review: datetime = Field(index=True, sa_type=DateTime)
    interval: int = Field(default=0)  # Days
    ease_factor: float = Field(default=2.5)
    repetitions: int = Field(default=0)
    correct_count: int = Field(default=0)
    incorrect_count: int = Field(default=0)
    average_response_time: float = Field(default=0)  # Milliseconds, over timed answers only
    timed_answer_count: int = Field(default=0)
    mastery_level: MasteryLevel = Field(
        default=MasteryLevel.LEARNING,
        sa_column=Column(SAString, nullable=False, default=MasteryLevel.LEARNING.value)
    )
    first_seen: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    version: int = Field(default=1)

    # Relationships
    card: "Card" = Relationship()
