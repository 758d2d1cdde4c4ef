"""
Card and card difficulty schemas.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from lokalny.models.enums import CardCategory, DifficultyLevel


class DifficultyBreakdown(BaseModel):
    """Result of scoring one card's content."""
    vocabulary_score: int = Field(..., ge=0, le=30)
    grammar_score: int = Field(..., ge=0, le=40)
    length_score: int = Field(..., ge=0, le=20)
    type_score: int = Field(..., ge=0, le=10)
    total_difficulty: int = Field(..., ge=0, le=100)
    difficulty_level: DifficultyLevel
    category: CardCategory
    word_length: float = 0
    topic_category: str = "general"


class CardDifficultyResponse(BaseModel):
    """Stored difficulty row for a card."""
    card_id: int
    vocabulary_score: int
    grammar_score: int
    length_score: int
    type_score: int
    total_difficulty: int
    calculated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateDeckRequest(BaseModel):
    """Request schema for creating a deck."""
    name: str
    description: Optional[str] = None


class DeckResponse(BaseModel):
    """Deck response schema."""
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateCardRequest(BaseModel):
    """Request schema for creating a card (import pipeline hook)."""
    deck_id: int
    front: str
    back: str
    tags: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "deck_id": 1,
                "front": "Gdzie jest dworzec?",
                "back": "Where is the train station?",
                "tags": "travel,question"
            }
        }


class UpdateCardRequest(BaseModel):
    """Request schema for editing a card; any change triggers re-classification."""
    front: Optional[str] = None
    back: Optional[str] = None
    tags: Optional[str] = None


class CardResponse(BaseModel):
    """Card response schema."""
    id: int
    deck_id: int
    front: str
    back: str
    tags: str = ""
    difficulty_level: Optional[DifficultyLevel] = None
    word_length: float = 0
    topic_category: Optional[str] = None
    difficulty: Optional[CardDifficultyResponse] = None

    class Config:
        from_attributes = True


class CardsByDifficultyResponse(BaseModel):
    """Cards of a deck within a difficulty range."""
    deck_id: int
    cards: List[CardResponse]


class DeckDifficultyCalculationResponse(BaseModel):
    """Result of (re)classifying every card of a deck."""
    deck_id: int
    total_cards: int
    processed: int
    skipped: int
    errors: int
    success: bool


class DeckDifficultyStatsResponse(BaseModel):
    """Difficulty statistics for a deck."""
    deck_id: int
    deck_name: str
    total_cards: int
    classified_cards: int
    avg_difficulty: Optional[float] = None
    min_difficulty: Optional[int] = None
    max_difficulty: Optional[int] = None
    distribution: Dict[str, int]
