"""
Spaced repetition schemas.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import date, datetime

from lokalny.models.enums import MasteryLevel, QuestionType


class ReviewState(BaseModel):
    """Scheduling state of one (user, card) pair, as read before and written after an answer."""
    last_reviewed: Optional[datetime] = None
    next_review: Optional[datetime] = None
    interval: int = 0
    ease_factor: float = 2.5
    repetitions: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    average_response_time: float = 0
    timed_answer_count: int = 0
    mastery_level: MasteryLevel = MasteryLevel.LEARNING

    class Config:
        from_attributes = True


class RecordAnswerRequest(BaseModel):
    """Request schema for recording one answered question."""
    user_id: int
    card_id: int
    correct: Optional[bool] = None  # Judged from user_answer when omitted
    response_time_ms: Optional[int] = Field(None, ge=0)
    question_type: QuestionType = QuestionType.FLASHCARD
    session_key: Optional[str] = Field(None, max_length=64)
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    hints_used: int = Field(0, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 1,
                "card_id": 42,
                "correct": True,
                "response_time_ms": 2100,
                "question_type": "flashcard",
                "session_key": "2026-10-19-morning"
            }
        }


class ScheduleUpdate(ReviewState):
    """Persisted schedule of a (user, card) pair after an answer."""
    user_id: int
    card_id: int
    version: int


class AnswerFeedback(BaseModel):
    """What changed for the learner because of an answer."""
    correct: bool
    was_new: bool
    previous_mastery: Optional[MasteryLevel] = None
    mastery_level: MasteryLevel
    mastery_changed: bool
    days_until_next_review: int
    next_review: datetime


class AnswerCheck(BaseModel):
    """Verdict on a typed answer."""
    correct: bool
    expected_answer: str
    diacritics_ignored: bool = False  # Matched only after folding Polish letters
    feedback: str


class AnswerOutcome(BaseModel):
    """Result of recording an answer."""
    schedule_update: ScheduleUpdate
    feedback: AnswerFeedback
    answer_check: Optional[AnswerCheck] = None  # Set when the answer was judged from user_answer


class DueCard(BaseModel):
    """A card whose review is due."""
    card_id: int
    deck_id: int
    front: str
    back: str
    next_review: datetime
    overdue_hours: float
    interval: int
    ease_factor: float
    repetitions: int
    mastery_level: MasteryLevel


class DueCardsResponse(BaseModel):
    """Due cards of a user, most overdue first."""
    user_id: int
    count: int
    cards: List[DueCard]


class ForecastDay(BaseModel):
    """Number of reviews falling due on one day."""
    date: date
    due_count: int


class ReviewForecastResponse(BaseModel):
    """Upcoming review load of a user."""
    user_id: int
    overdue: int
    days: List[ForecastDay]


class MasteryBucket(BaseModel):
    """Count of cards in one mastery bucket."""
    count: int = 0
    due: int = 0
    not_due: int = 0


class MasteryDistributionResponse(BaseModel):
    """Cards per mastery bucket for a user."""
    user_id: int
    deck_id: Optional[int] = None
    total: int
    buckets: Dict[str, MasteryBucket]
