"""
Lesson endpoints: building the next batch of questions.
"""
from fastapi import APIRouter, Depends
from sqlmodel import Session
import logging

from lokalny.core.database import get_session
from lokalny.schemas.selection import SelectQuestionsRequest, QuestionBatch
from lokalny.services.selection_service import select_questions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.post("/questions", response_model=QuestionBatch)
async def generate_questions(
    request: SelectQuestionsRequest,
    session: Session = Depends(get_session)
):
    """
    Build the next batch of questions for a user.

    Due reviews come first, the rest is sampled around the user's difficulty
    band. When the decks hold fewer matching cards than requested, the batch
    is shorter and ``insufficient_pool`` is set.
    """
    return select_questions(
        session,
        user_id=request.user_id,
        scope=request.deck_ids,
        count=request.count,
        question_types=request.question_types,
        difficulty_filter=request.difficulty,
        use_spaced_repetition=request.use_spaced_repetition,
    )
