"""
Question selection service.

Builds the next batch of questions for a user: due reviews first (most
overdue first), then cards sampled without replacement with a bias towards
the user's current difficulty band. Each question carries its client payload,
with multiple choice distractors drawn from the rest of the pool. Selection
never writes to the database.
"""
import heapq
import logging
import random
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from sqlmodel import Session, select

from lokalny.core.config import settings
from lokalny.core.exceptions import InvalidParameterError, NotFoundError, ValidationError
from lokalny.models.models import Card, CardDifficulty, Deck, User, UserCardProgress, UserProgression
from lokalny.models.enums import CardCategory, DifficultyLevel, QuestionType
from lokalny.schemas.selection import QuestionBatch, SelectedQuestion
from lokalny.services.difficulty_service import (
    calculate_card_difficulty,
    categorize_text,
    classify_difficulty_level,
)
from lokalny.services.filter_service import parse_deck_ids, parse_difficulty_filter, parse_question_types
from lokalny.services.question_service import build_payload
from lokalny.utils.text_utils import normalize_card_text, tokenize
from lokalny.utils.time_utils import utcnow, to_naive_utc

logger = logging.getLogger(__name__)


DEFAULT_QUESTION_TYPES = [
    QuestionType.FLASHCARD,
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.FILL_BLANK,
    QuestionType.TRANSLATION_PL_EN,
]
MAX_BATCH_SIZE = 100
WORD_ORDER_MIN_TOKENS = 2


class _Candidate:
    """A card eligible for the batch with the data selection needs."""
    __slots__ = ("card", "total_difficulty", "difficulty_level", "question_types")

    def __init__(self, card: Card, total_difficulty: int, question_types: List[QuestionType]):
        self.card = card
        self.total_difficulty = total_difficulty
        self.difficulty_level = classify_difficulty_level(total_difficulty)
        self.question_types = question_types


def is_compatible(card: Card, question_type: QuestionType, category: Optional[CardCategory] = None) -> bool:
    """
    Whether a card can be presented in a question format.

    Word order needs at least two tokens on the front; pronunciation is not
    offered for full sentences. Every other format accepts any card.
    """
    if question_type == QuestionType.WORD_ORDER:
        return len(tokenize(card.front)) >= WORD_ORDER_MIN_TOKENS
    if question_type == QuestionType.PRONUNCIATION:
        category = category or categorize_text(card.front)
        return category != CardCategory.SENTENCE
    return True


def selection_weight(total_difficulty: int, current_difficulty: int, band_width: Optional[float] = None) -> float:
    """Sampling weight of a card: 1 / (1 + |difficulty - band| / band_width), in (0, 1]."""
    band_width = band_width or settings.selection_band_width
    return 1.0 / (1.0 + abs(total_difficulty - current_difficulty) / band_width)


def weighted_sample(
    candidates: Sequence[_Candidate],
    k: int,
    current_difficulty: int,
    rng: random.Random
) -> List[_Candidate]:
    """
    Sample ``k`` candidates without replacement, weighted by closeness to the difficulty band.

    Each candidate draws the key u ** (1 / weight) with u uniform in [0, 1);
    the k largest keys win, in descending key order.
    """
    if k <= 0 or not candidates:
        return []
    keyed = [
        (rng.random() ** (1.0 / selection_weight(c.total_difficulty, current_difficulty)), index)
        for index, c in enumerate(candidates)
    ]
    return [candidates[index] for _, index in heapq.nlargest(k, keyed)]


def _build_pool(
    session: Session,
    deck_ids: List[int],
    tier: Optional[DifficultyLevel],
    question_types: List[QuestionType]
) -> List[_Candidate]:
    statement = (
        select(Card, CardDifficulty.total_difficulty)
        .outerjoin(CardDifficulty, CardDifficulty.card_id == Card.id)
        .where(Card.deck_id.in_(deck_ids))  # type: ignore
        .order_by(Card.id)
    )

    pool = []
    for card, stored_total in session.exec(statement).all():
        total = stored_total
        if total is None:
            # Unclassified cards are scored in memory so selection stays read-only
            try:
                total = calculate_card_difficulty(card.front, card.back, card.tags).total_difficulty
            except ValidationError as e:
                logger.warning(f"Skipping card {card.id} during selection: {e}")
                continue

        if tier is not None and classify_difficulty_level(total) != tier:
            continue

        category = categorize_text(card.front)
        compatible = [qt for qt in question_types if is_compatible(card, qt, category)]
        if not compatible:
            continue
        pool.append(_Candidate(card, total, compatible))
    return pool


def select_questions(
    session: Session,
    user_id: int,
    scope: Union[int, str, Sequence[int]],
    count: int,
    question_types: Union[str, Sequence[Union[str, QuestionType]], None] = None,
    difficulty_filter: Union[str, DifficultyLevel, None] = "all",
    use_spaced_repetition: bool = True,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> QuestionBatch:
    """
    Build the next batch of questions for a user.

    Args:
        session: Database session
        user_id: User ID
        scope: Deck id or list of deck ids to draw from
        count: Number of questions wanted (1-100)
        question_types: Allowed question formats (defaults to flashcard,
            multiple_choice, fill_blank and translation_pl_en)
        difficulty_filter: 'all', 'beginner', 'intermediate' or 'advanced'
        use_spaced_repetition: Put due reviews first
        now: Reference time for due reviews (defaults to current UTC time)
        rng: Random source (a fresh one when None)

    Returns:
        QuestionBatch; when the pool is smaller than ``count`` it holds what
        is available and ``insufficient_pool`` is set

    Raises:
        InvalidParameterError: For an unknown tier or question type or a bad count
        NotFoundError: If the user or a deck does not exist
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidParameterError("count must be a positive integer")
    if count > MAX_BATCH_SIZE:
        raise InvalidParameterError(f"count cannot exceed {MAX_BATCH_SIZE}")
    types = parse_question_types(question_types) or list(DEFAULT_QUESTION_TYPES)
    tier = parse_difficulty_filter(difficulty_filter)
    deck_ids = parse_deck_ids(scope)

    if not session.get(User, user_id):
        raise NotFoundError(f"User with id {user_id} not found")
    for deck_id in deck_ids:
        if not session.get(Deck, deck_id):
            raise NotFoundError(f"Deck with id {deck_id} not found")

    now = to_naive_utc(now) if now else utcnow()
    rng = rng or random.Random()

    pool = _build_pool(session, deck_ids, tier, types)
    progression = session.exec(
        select(UserProgression).where(UserProgression.user_id == user_id)
    ).first()
    current_difficulty = (
        progression.current_difficulty if progression else settings.default_starting_difficulty
    )

    by_card_id: Dict[int, _Candidate] = {c.card.id: c for c in pool}
    pool_answers: Dict[int, str] = {c.card.id: normalize_card_text(c.card.back) for c in pool}
    selected: List[SelectedQuestion] = []

    due_ids = []
    if use_spaced_repetition and progression is not None and pool:
        due_rows = session.exec(
            select(UserCardProgress.card_id, UserCardProgress.next_review)
            .where(UserCardProgress.user_id == user_id)
            .where(UserCardProgress.card_id.in_(list(by_card_id)))  # type: ignore
            .where(UserCardProgress.next_review <= now)
            .order_by(UserCardProgress.next_review, UserCardProgress.card_id)
            .limit(count)
        ).all()
        for card_id, next_review in due_rows:
            due_ids.append(card_id)
            selected.append(
                _to_question(by_card_id[card_id], pool_answers, rng, is_review=True, next_review=next_review)
            )

    due_set = set(due_ids)
    remaining = [c for c in pool if c.card.id not in due_set]
    for candidate in weighted_sample(remaining, count - len(selected), current_difficulty, rng):
        selected.append(_to_question(candidate, pool_answers, rng))

    insufficient = len(selected) < count
    if insufficient:
        logger.info(
            f"Question pool for user {user_id} in decks {deck_ids} has {len(selected)} "
            f"of {count} requested cards"
        )
    logger.info(
        f"Selected {len(selected)} questions for user {user_id} "
        f"({len(due_ids)} due, band {current_difficulty})"
    )

    return QuestionBatch(
        user_id=user_id,
        questions=selected,
        requested=count,
        returned=len(selected),
        due_count=len(due_ids),
        current_difficulty=current_difficulty,
        insufficient_pool=insufficient,
    )


def _to_question(
    candidate: _Candidate,
    pool_answers: Dict[int, str],
    rng: random.Random,
    is_review: bool = False,
    next_review: Optional[datetime] = None
) -> SelectedQuestion:
    card = candidate.card
    question_type = rng.choice(candidate.question_types)
    other_answers = [answer for card_id, answer in pool_answers.items() if card_id != card.id]
    return SelectedQuestion(
        card_id=card.id,
        deck_id=card.deck_id,
        front=card.front,
        back=card.back,
        question_type=question_type,
        total_difficulty=candidate.total_difficulty,
        difficulty_level=candidate.difficulty_level,
        is_review=is_review,
        next_review=next_review,
        payload=build_payload(card.front, card.back, question_type, other_answers, rng),
    )
