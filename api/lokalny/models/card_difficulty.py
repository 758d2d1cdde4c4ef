"""
CardDifficulty model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint, DateTime
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from lokalny.utils.time_utils import utcnow

if TYPE_CHECKING:
    from lokalny.models.card import Card


class CardDifficulty(SQLModel, table=True):
    """CardDifficulty table - one pre-calculated score breakdown per card."""
    __tablename__ = "card_difficulty"
    __table_args__ = (
        CheckConstraint("vocabulary_score >= 0 AND vocabulary_score <= 30", name="card_difficulty_vocabulary_range"),
        CheckConstraint("grammar_score >= 0 AND grammar_score <= 40", name="card_difficulty_grammar_range"),
        CheckConstraint("length_score >= 0 AND length_score <= 20", name="card_difficulty_length_range"),
        CheckConstraint("type_score >= 0 AND type_score <= 10", name="card_difficulty_type_range"),
        CheckConstraint("total_difficulty >= 0 AND total_difficulty <= 100", name="card_difficulty_total_range"),
        CheckConstraint(
            "total_difficulty = vocabulary_score + grammar_score + length_score + type_score",
            name="card_difficulty_total_is_sum"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    card_id: int = Field(foreign_key="card.id", unique=True, index=True)
    vocabulary_score: int
    grammar_score: int
    length_score: int
    type_score: int
    total_difficulty: int
    calculated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    # Relationships
    card: "Card" = Relationship(back_populates="difficulty")
