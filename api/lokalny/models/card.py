"""
Card model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint, Column, DateTime, String as SAString
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from lokalny.models.enums import DifficultyLevel
from lokalny.utils.time_utils import utcnow

if TYPE_CHECKING:
    from lokalny.models.deck import Deck
    from lokalny.models.card_difficulty import CardDifficulty


class Card(SQLModel, table=True):
    """Card table - front (Polish) / back (English) pair owned by a deck."""
    __tablename__ = "card"
    __table_args__ = (
        CheckConstraint("length(trim(front)) > 0", name="card_front_not_empty"),
        CheckConstraint("length(trim(back)) > 0", name="card_back_not_empty"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    deck_id: int = Field(foreign_key="deck.id", index=True)
    front: str
    back: str
    tags: str = Field(default="")  # Comma-separated tags (as imported from Anki)
    # Derived by the classifier; None until the card is classified
    difficulty_level: Optional[DifficultyLevel] = Field(
        default=None,
        sa_column=Column(SAString, nullable=True)
    )
    word_length: float = Field(default=0)  # Average word length of the front text
    topic_category: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    # Relationships
    deck: "Deck" = Relationship(back_populates="cards")
    difficulty: Optional["CardDifficulty"] = Relationship(
        back_populates="card",
        sa_relationship_kwargs={"uselist": False}
    )
