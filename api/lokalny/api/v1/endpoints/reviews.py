"""
Spaced repetition endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional
import logging

from lokalny.core.database import get_session
from lokalny.schemas.review import (
    RecordAnswerRequest,
    AnswerOutcome,
    DueCardsResponse,
    ReviewForecastResponse,
    MasteryDistributionResponse,
)
from lokalny.services import srs_service
from lokalny.services.filter_service import parse_deck_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("/answers", response_model=AnswerOutcome)
async def record_answer(
    request: RecordAnswerRequest,
    session: Session = Depends(get_session)
):
    """
    Record an answered question and reschedule the card.

    Send either the client's verdict in `correct` or the typed `user_answer`
    to have it checked. Returns the new schedule and feedback about the
    mastery transition.
    """
    return srs_service.record_answer(
        session,
        user_id=request.user_id,
        card_id=request.card_id,
        correct=request.correct,
        response_time_ms=request.response_time_ms,
        question_type=request.question_type,
        session_key=request.session_key,
        user_answer=request.user_answer,
        correct_answer=request.correct_answer,
        hints_used=request.hints_used,
    )


@router.get("/users/{user_id}/due", response_model=DueCardsResponse)
async def get_due_cards(
    user_id: int,
    deck_ids: Optional[str] = Query(None, description="Comma-separated deck IDs"),
    limit: Optional[int] = Query(None, description="Maximum number of cards"),
    session: Session = Depends(get_session)
):
    """Cards due for review, most overdue first."""
    parsed_deck_ids = parse_deck_ids(deck_ids) if deck_ids else None
    cards = srs_service.get_due_cards(session, user_id, deck_ids=parsed_deck_ids, limit=limit)
    return DueCardsResponse(user_id=user_id, count=len(cards), cards=cards)


@router.get("/users/{user_id}/forecast", response_model=ReviewForecastResponse)
async def get_review_forecast(
    user_id: int,
    days: int = Query(7, description="Number of days to forecast (1-90)"),
    session: Session = Depends(get_session)
):
    """Reviews falling due on each of the coming days."""
    return srs_service.get_review_forecast(session, user_id, days=days)


@router.get("/users/{user_id}/mastery", response_model=MasteryDistributionResponse)
async def get_mastery_distribution(
    user_id: int,
    deck_id: Optional[int] = None,
    session: Session = Depends(get_session)
):
    """Cards per mastery bucket, split into due and not yet due."""
    return srs_service.get_mastery_distribution(session, user_id, deck_id=deck_id)
