"""
SRS (Spaced Repetition System) service implementing an SM-2 style scheduler.

This service decides when each (user, card) pair is reviewed next and keeps
the UserCardProgress rows in sync with answered questions.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lokalny.core.config import settings
from lokalny.core.exceptions import ConflictError, NotFoundError, ValidationError, InvalidParameterError
from lokalny.core.signals import answer_recorded
from lokalny.models.models import Card, ExerciseResult, User, UserCardProgress
from lokalny.models.enums import MasteryLevel, QuestionType
from lokalny.schemas.review import (
    AnswerFeedback,
    AnswerOutcome,
    DueCard,
    ForecastDay,
    MasteryBucket,
    MasteryDistributionResponse,
    ReviewForecastResponse,
    ReviewState,
    ScheduleUpdate,
)
from lokalny.services.filter_service import parse_question_type
from lokalny.services.question_service import check_answer, expected_answer
from lokalny.utils.time_utils import utcnow, to_naive_utc

logger = logging.getLogger(__name__)


# Ease factor below which SM-2 intervals stop making sense; also a storage constraint
EASE_FLOOR = 1.3

# Mastery buckets by repetition count: 0-1 learning, 2-4 familiar, 5+ mastered
FAMILIAR_MIN_REPETITIONS = 2
MASTERED_MIN_REPETITIONS = 5

# Response time thresholds as fractions of the expected time for the question type
FULL_BONUS_RATIO = 0.7
HALF_BONUS_RATIO = 1.0


class SchedulerParams(BaseModel):
    """Tunable scheduler parameters; defaults come from settings."""
    initial_ease_factor: float
    min_ease_factor: float
    max_ease_factor: float
    ease_penalty: float
    fast_response_bonus: float
    max_interval_days: int
    expected_response_ms: Dict[str, int]
    default_expected_response_ms: int

    @classmethod
    def from_settings(cls) -> "SchedulerParams":
        return cls(
            initial_ease_factor=settings.initial_ease_factor,
            min_ease_factor=max(settings.min_ease_factor, EASE_FLOOR),
            max_ease_factor=settings.max_ease_factor,
            ease_penalty=settings.ease_penalty,
            fast_response_bonus=settings.fast_response_bonus,
            max_interval_days=settings.max_interval_days,
            expected_response_ms=dict(settings.expected_response_ms),
            default_expected_response_ms=settings.default_expected_response_ms,
        )


class _StaleVersion(Exception):
    """Raised internally when an optimistic version check matched no row."""


def mastery_level_for(repetitions: int) -> MasteryLevel:
    """
    Derive the mastery bucket from a repetition count.

    Args:
        repetitions: Consecutive correct answers

    Returns:
        MasteryLevel (learning for 0-1, familiar for 2-4, mastered for 5+)
    """
    if repetitions >= MASTERED_MIN_REPETITIONS:
        return MasteryLevel.MASTERED
    if repetitions >= FAMILIAR_MIN_REPETITIONS:
        return MasteryLevel.FAMILIAR
    return MasteryLevel.LEARNING


def initial_state(params: Optional[SchedulerParams] = None) -> ReviewState:
    """State of a card the user has never seen."""
    params = params or SchedulerParams.from_settings()
    return ReviewState(ease_factor=params.initial_ease_factor)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def response_bonus(
    response_time_ms: Optional[int],
    question_type: QuestionType,
    params: SchedulerParams
) -> float:
    """
    Ease bonus earned by a correct answer's response time.

    Full bonus below 70% of the question type's expected time, half bonus
    below 100%, nothing otherwise or when no time was measured.
    """
    if response_time_ms is None:
        return 0.0
    expected = params.expected_response_ms.get(question_type.value, params.default_expected_response_ms)
    if response_time_ms < expected * FULL_BONUS_RATIO:
        return params.fast_response_bonus
    if response_time_ms < expected * HALF_BONUS_RATIO:
        return params.fast_response_bonus / 2
    return 0.0


def calculate_next_review(
    state: ReviewState,
    correct: bool,
    response_time_ms: Optional[int],
    question_type: QuestionType,
    now: datetime,
    params: Optional[SchedulerParams] = None
) -> ReviewState:
    """
    Apply one answer to a review state.

    Incorrect answers reset repetitions to 0 and the interval to 1 day and
    lower the ease factor by the configured penalty (never below 1.3).
    Correct answers increment repetitions; the interval becomes 1 day after
    the first, 6 days after the second, then the previous interval times the
    ease factor. A fast correct answer raises the ease factor (up to the
    configured maximum); a correct answer never lowers it.

    Args:
        state: State before the answer (use ``initial_state()`` for new cards)
        correct: Whether the answer was correct
        response_time_ms: Response time in milliseconds (None if not measured)
        question_type: Format the card was presented in
        now: Time of the answer (naive UTC)
        params: Scheduler parameters (defaults from settings)

    Returns:
        The new ReviewState

    Raises:
        ValidationError: If the inputs would produce an invalid state
    """
    params = params or SchedulerParams.from_settings()
    if response_time_ms is not None and response_time_ms < 0:
        raise ValidationError("response_time_ms must not be negative")
    if state.interval < 0 or state.repetitions < 0:
        raise ValidationError("Review state has a negative interval or repetition count")

    ease_factor = state.ease_factor
    if correct:
        repetitions = state.repetitions + 1
        if repetitions == 1:
            interval = 1
        elif repetitions == 2:
            interval = 6
        else:
            interval = _round_half_up(max(state.interval, 1) * ease_factor)
        interval = min(interval, params.max_interval_days)

        bonus = response_bonus(response_time_ms, question_type, params)
        ease_factor = max(ease_factor, min(ease_factor + bonus, params.max_ease_factor))
        correct_count = state.correct_count + 1
        incorrect_count = state.incorrect_count
    else:
        repetitions = 0
        interval = 1
        ease_factor = max(params.min_ease_factor, ease_factor - params.ease_penalty)
        correct_count = state.correct_count
        incorrect_count = state.incorrect_count + 1

    ease_factor = round(ease_factor, 4)
    if ease_factor < EASE_FLOOR or interval < 0:
        raise ValidationError(f"Refusing to store ease_factor={ease_factor} interval={interval}")

    # Running mean over the timed answers of the pair
    average_response_time = state.average_response_time
    timed_answer_count = state.timed_answer_count
    if response_time_ms is not None:
        average_response_time = (
            (average_response_time * timed_answer_count + response_time_ms) / (timed_answer_count + 1)
        )
        timed_answer_count += 1

    return ReviewState(
        last_reviewed=now,
        next_review=now + timedelta(days=interval),
        interval=interval,
        ease_factor=ease_factor,
        repetitions=repetitions,
        correct_count=correct_count,
        incorrect_count=incorrect_count,
        average_response_time=round(average_response_time, 2),
        timed_answer_count=timed_answer_count,
        mastery_level=mastery_level_for(repetitions),
    )


def _read_progress(session: Session, user_id: int, card_id: int) -> Optional[UserCardProgress]:
    statement = (
        select(UserCardProgress)
        .where(UserCardProgress.user_id == user_id)
        .where(UserCardProgress.card_id == card_id)
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()


def _state_values(state: ReviewState) -> Dict:
    return {
        "last_reviewed": state.last_reviewed,
        "next_review": state.next_review,
        "interval": state.interval,
        "ease_factor": state.ease_factor,
        "repetitions": state.repetitions,
        "correct_count": state.correct_count,
        "incorrect_count": state.incorrect_count,
        "average_response_time": state.average_response_time,
        "timed_answer_count": state.timed_answer_count,
        "mastery_level": state.mastery_level.value,
    }


def record_answer(
    session: Session,
    user_id: int,
    card_id: int,
    correct: Optional[bool] = None,
    response_time_ms: Optional[int] = None,
    question_type: Union[QuestionType, str] = QuestionType.FLASHCARD,
    session_key: Optional[str] = None,
    user_answer: Optional[str] = None,
    correct_answer: Optional[str] = None,
    hints_used: int = 0,
    now: Optional[datetime] = None
) -> AnswerOutcome:
    """
    Record an answered question and reschedule the card for the user.

    The progress row is written with an optimistic version check and the
    ExerciseResult is appended in the same transaction. A concurrent writer
    (stale version or a concurrent first insert) makes the attempt roll back
    and retry from a fresh read.

    Args:
        session: Database session
        user_id: Answering user
        card_id: Answered card
        correct: Whether the answer was correct; when None the verdict comes
            from checking ``user_answer`` against the expected answer
        response_time_ms: Response time in milliseconds
        question_type: Format the card was presented in
        session_key: Client session identifier for the answer log
        user_answer: What the user answered
        correct_answer: The expected answer (derived from the card and question
            type when omitted and the answer is checked here)
        hints_used: Number of hints shown
        now: Time of the answer (defaults to current UTC time)

    Returns:
        AnswerOutcome with the new schedule and learner feedback

    Raises:
        NotFoundError: If the user or card does not exist
        ValidationError: If the inputs are malformed or neither ``correct`` nor
            ``user_answer`` is given
        ConflictError: If concurrent writers used up every retry
    """
    question_type = parse_question_type(question_type)
    if hints_used < 0:
        raise ValidationError("hints_used must not be negative")
    if not session.get(User, user_id):
        raise NotFoundError(f"User with id {user_id} not found")
    card = session.get(Card, card_id)
    if not card:
        raise NotFoundError(f"Card with id {card_id} not found")

    answer_check = None
    if correct is None:
        if user_answer is None:
            raise ValidationError("Either correct or user_answer is required")
        if correct_answer is None:
            correct_answer = expected_answer(card.front, card.back, question_type)
        answer_check = check_answer(question_type, user_answer, correct_answer)
        correct = answer_check.correct

    now = to_naive_utc(now) if now else utcnow()
    params = SchedulerParams.from_settings()
    attempts = settings.max_conflict_retries + 1

    for attempt in range(1, attempts + 1):
        progress = _read_progress(session, user_id, card_id)
        was_new = progress is None
        previous = initial_state(params) if was_new else ReviewState.model_validate(progress)
        new_state = calculate_next_review(previous, correct, response_time_ms, question_type, now, params)

        try:
            if was_new:
                progress = UserCardProgress(
                    user_id=user_id,
                    card_id=card_id,
                    first_seen=now,
                    version=1,
                    **_state_values(new_state)
                )
                session.add(progress)
                session.flush()
                version = 1
            else:
                version = progress.version + 1
                result = session.execute(
                    update(UserCardProgress)
                    .where(UserCardProgress.id == progress.id)
                    .where(UserCardProgress.version == progress.version)
                    .values(version=version, **_state_values(new_state))
                )
                if result.rowcount != 1:
                    raise _StaleVersion()

            session.add(ExerciseResult(
                user_id=user_id,
                card_id=card_id,
                session_key=session_key,
                question_type=question_type.value,
                correct=correct,
                user_answer=user_answer,
                correct_answer=correct_answer,
                time_taken_ms=response_time_ms,
                hints_used=hints_used,
                created_at=now,
            ))
            session.commit()
        except (IntegrityError, _StaleVersion):
            session.rollback()
            logger.warning(
                f"Concurrent update of progress for user {user_id} card {card_id} "
                f"(attempt {attempt}/{attempts}), retrying"
            )
            continue

        logger.info(
            f"User {user_id} answered card {card_id} {'correctly' if correct else 'incorrectly'}: "
            f"repetitions={new_state.repetitions} interval={new_state.interval}d "
            f"mastery={new_state.mastery_level.value}"
        )
        answer_recorded.send(user_id, card_id=card_id, correct=correct, mastery_level=new_state.mastery_level)

        schedule_update = ScheduleUpdate(
            user_id=user_id,
            card_id=card_id,
            version=version,
            **new_state.model_dump()
        )
        feedback = AnswerFeedback(
            correct=correct,
            was_new=was_new,
            previous_mastery=None if was_new else previous.mastery_level,
            mastery_level=new_state.mastery_level,
            mastery_changed=was_new or previous.mastery_level != new_state.mastery_level,
            days_until_next_review=new_state.interval,
            next_review=new_state.next_review,
        )
        return AnswerOutcome(schedule_update=schedule_update, feedback=feedback, answer_check=answer_check)

    logger.error(f"Giving up on progress update for user {user_id} card {card_id} after {attempts} attempts")
    raise ConflictError(f"Concurrent updates to card {card_id} for user {user_id}; try again")


def get_due_cards(
    session: Session,
    user_id: int,
    deck_ids: Optional[Sequence[int]] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None
) -> List[DueCard]:
    """
    Get the cards whose review is due, most overdue first.

    Args:
        session: Database session
        user_id: User ID
        deck_ids: Restrict to these decks (all decks when None)
        now: Reference time (defaults to current UTC time)
        limit: Maximum number of cards

    Returns:
        List of DueCard
    """
    if not session.get(User, user_id):
        raise NotFoundError(f"User with id {user_id} not found")
    if limit is not None and limit < 1:
        raise InvalidParameterError("Limit must be at least 1")
    now = to_naive_utc(now) if now else utcnow()

    statement = (
        select(UserCardProgress, Card)
        .join(Card, Card.id == UserCardProgress.card_id)
        .where(UserCardProgress.user_id == user_id)
        .where(UserCardProgress.next_review <= now)
        .order_by(UserCardProgress.next_review, UserCardProgress.card_id)
    )
    if deck_ids:
        statement = statement.where(Card.deck_id.in_(list(deck_ids)))  # type: ignore
    if limit is not None:
        statement = statement.limit(limit)

    due_cards = []
    for progress, card in session.exec(statement).all():
        due_cards.append(DueCard(
            card_id=card.id,
            deck_id=card.deck_id,
            front=card.front,
            back=card.back,
            next_review=progress.next_review,
            overdue_hours=round((now - progress.next_review).total_seconds() / 3600, 2),
            interval=progress.interval,
            ease_factor=progress.ease_factor,
            repetitions=progress.repetitions,
            mastery_level=progress.mastery_level,
        ))
    return due_cards


def get_review_forecast(
    session: Session,
    user_id: int,
    days: int = 7,
    now: Optional[datetime] = None
) -> ReviewForecastResponse:
    """
    Count reviews falling due on each of the next ``days`` calendar days.

    Day 0 is today and includes reviews that are already overdue.
    """
    if not session.get(User, user_id):
        raise NotFoundError(f"User with id {user_id} not found")
    if not (1 <= days <= 90):
        raise InvalidParameterError("days must be between 1 and 90")
    now = to_naive_utc(now) if now else utcnow()
    today = now.date()
    horizon = datetime.combine(today + timedelta(days=days), datetime.min.time())

    next_reviews = session.exec(
        select(UserCardProgress.next_review)
        .where(UserCardProgress.user_id == user_id)
        .where(UserCardProgress.next_review < horizon)
    ).all()

    counts = [0] * days
    overdue = 0
    for next_review in next_reviews:
        if next_review <= now:
            overdue += 1
        offset = max((next_review.date() - today).days, 0)
        counts[offset] += 1

    return ReviewForecastResponse(
        user_id=user_id,
        overdue=overdue,
        days=[ForecastDay(date=today + timedelta(days=i), due_count=counts[i]) for i in range(days)],
    )


def get_mastery_distribution(
    session: Session,
    user_id: int,
    deck_id: Optional[int] = None,
    now: Optional[datetime] = None
) -> MasteryDistributionResponse:
    """Count the user's cards per mastery bucket, split into due and not yet due."""
    if not session.get(User, user_id):
        raise NotFoundError(f"User with id {user_id} not found")
    now = to_naive_utc(now) if now else utcnow()

    statement = select(UserCardProgress).where(UserCardProgress.user_id == user_id)
    if deck_id is not None:
        statement = statement.join(Card, Card.id == UserCardProgress.card_id).where(Card.deck_id == deck_id)

    buckets = {level.value: MasteryBucket() for level in MasteryLevel}
    rows = session.exec(statement).all()
    for progress in rows:
        bucket = buckets[MasteryLevel(progress.mastery_level).value]
        bucket.count += 1
        if progress.next_review <= now:
            bucket.due += 1
        else:
            bucket.not_due += 1

    return MasteryDistributionResponse(
        user_id=user_id,
        deck_id=deck_id,
        total=len(rows),
        buckets=buckets,
    )
