"""
Deck model.
"""
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime

from lokalny.utils.time_utils import utcnow

if TYPE_CHECKING:
    from lokalny.models.card import Card


class Deck(SQLModel, table=True):
    """Deck table - a named collection of cards (one Anki import, one topic)."""
    __tablename__ = "deck"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    # Relationships
    cards: List["Card"] = Relationship(back_populates="deck")
