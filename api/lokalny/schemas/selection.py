"""
Question selection schemas.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from lokalny.models.enums import DifficultyLevel, QuestionType


class SelectQuestionsRequest(BaseModel):
    """Request schema for building the next batch of questions."""
    user_id: int
    deck_ids: List[int] = Field(..., min_length=1)
    count: int = 10
    question_types: Optional[List[str]] = None  # Defaults to flashcard, multiple_choice, fill_blank, translation_pl_en
    difficulty: str = "all"
    use_spaced_repetition: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 1,
                "deck_ids": [1],
                "count": 10,
                "question_types": ["flashcard", "multiple_choice"],
                "difficulty": "all",
                "use_spaced_repetition": True
            }
        }


class QuestionPayload(BaseModel):
    """What the client shows for one question and the answer it expects."""
    prompt: str
    correct_answer: str
    options: Optional[List[str]] = None  # Multiple choice options or shuffled word order tokens
    correct_index: Optional[int] = None
    hint: Optional[str] = None
    blank_position: Optional[int] = None  # Token index blanked out of the front


class SelectedQuestion(BaseModel):
    """One question of a batch: a card and the format to present it in."""
    card_id: int
    deck_id: int
    front: str
    back: str
    question_type: QuestionType
    total_difficulty: int
    difficulty_level: DifficultyLevel
    is_review: bool = False  # True when the card was picked because its review is due
    next_review: Optional[datetime] = None
    payload: QuestionPayload


class QuestionBatch(BaseModel):
    """Ordered batch of questions; due reviews come first."""
    user_id: int
    questions: List[SelectedQuestion]
    requested: int
    returned: int
    due_count: int
    current_difficulty: int
    insufficient_pool: bool
