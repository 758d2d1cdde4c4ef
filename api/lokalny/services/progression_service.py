"""
Progression service: XP, levels, streaks and the adaptive difficulty band.

A user's progression changes once per completed session. ``apply_session``
writes the ProgressionSession audit row and the updated UserProgression in a
single transaction guarded by an optimistic version check.
"""
import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lokalny.core.config import settings
from lokalny.core.exceptions import ConflictError, InvalidParameterError, NotFoundError, ValidationError
from lokalny.core.signals import level_up, milestone_reached
from lokalny.models.models import ExerciseResult, ProgressionSession, User, UserProgression
from lokalny.schemas.progression import (
    CelebrationData,
    DifficultyRange,
    DifficultyTrendPoint,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelInfo,
    LevelProgressionResponse,
    ProgressionProjection,
    ProgressionResponse,
    ProgressionStatsResponse,
    ProgressionUpdate,
    ResetProgressionResponse,
    SessionStats,
    SessionSummary,
)
from lokalny.utils.time_utils import utcnow, utctoday

logger = logging.getLogger(__name__)


MAX_LEVEL = 50
XP_PER_LEVEL = 100
MIN_DIFFICULTY = 0
MAX_DIFFICULTY = 100

LEVEL_TITLES = {
    1: 'Beginner',
    5: 'Novice',
    10: 'Student',
    15: 'Learner',
    20: 'Intermediate',
    25: 'Skilled',
    30: 'Advanced',
    35: 'Proficient',
    40: 'Expert',
    45: 'Master',
    50: 'Grandmaster',
}

STREAK_MILESTONES = (7, 14, 30, 60, 100)
XP_MILESTONE_STEP = 500

LEADERBOARD_ORDERS = ("level", "xp")


class _StaleVersion(Exception):
    """Raised internally when an optimistic version check matched no row."""


# ============================================================================
# Pure calculations
# ============================================================================

def calculate_session_xp(
    correct_answers: int,
    total_questions: int,
    current_difficulty: int,
    duration_seconds: Optional[int] = None
) -> int:
    """
    Calculate XP earned for a learning session.

    floor(base_xp * (difficulty / 50) * accuracy), plus one XP per minute of
    session time up to the configured cap. Any answered session earns at
    least 1 XP.

    Args:
        correct_answers: Number of correct answers
        total_questions: Total questions answered
        current_difficulty: Difficulty band during the session (0-100)
        duration_seconds: Session length in seconds

    Returns:
        XP earned (never negative)
    """
    if total_questions <= 0:
        return 0

    difficulty_multiplier = current_difficulty / 50
    accuracy = correct_answers / total_questions
    session_xp = math.floor(settings.base_session_xp * difficulty_multiplier * accuracy)

    time_bonus = 0
    if duration_seconds and duration_seconds > 0:
        time_bonus = min(duration_seconds // 60, settings.max_time_bonus_xp)

    return max(session_xp + time_bonus, 1)


def calculate_level(total_xp: int) -> int:
    """Level from cumulative XP: 100 XP per level, capped at 50."""
    return min(int(total_xp) // XP_PER_LEVEL + 1, MAX_LEVEL)


def xp_for_next_level(current_level: int) -> int:
    """Cumulative XP at which the next level starts (0 at max level)."""
    if current_level >= MAX_LEVEL:
        return 0
    return current_level * XP_PER_LEVEL


def xp_progress(total_xp: int, current_level: int) -> int:
    """XP earned within the current level."""
    return total_xp - (current_level - 1) * XP_PER_LEVEL


def calculate_streak(last_session_date: Optional[date], session_date: date, current_streak: int) -> int:
    """
    Calculate the streak after a session on ``session_date``.

    Calendar days are compared: the day after the last session extends the
    streak, the same day keeps it, a gap of more than one day resets it to 1.
    A session dated before the last one leaves the streak unchanged.

    Args:
        last_session_date: Date of the previous session (None for the first)
        session_date: Date of this session
        current_streak: Streak before this session

    Returns:
        New streak count
    """
    if last_session_date is None:
        return 1

    days = (session_date - last_session_date).days
    if days <= 0:
        return max(current_streak, 1)
    if days == 1:
        return current_streak + 1
    return 1


def adjust_difficulty(current_difficulty: int, accuracy: float) -> int:
    """
    Nudge the difficulty band after a session.

    Accuracy at or above the raise threshold moves it up by one step, below
    the lower threshold moves it down; the result is clipped to 0-100.
    """
    new_difficulty = current_difficulty
    if accuracy >= settings.difficulty_raise_accuracy:
        new_difficulty += settings.difficulty_step
    elif accuracy < settings.difficulty_lower_accuracy:
        new_difficulty -= settings.difficulty_step
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, new_difficulty))


def get_difficulty_bounds(level: int) -> DifficultyRange:
    """Suggested difficulty range for a level (display only)."""
    if level <= 2:
        return DifficultyRange(min=0, max=25)
    elif level <= 5:
        return DifficultyRange(min=15, max=45)
    elif level <= 10:
        return DifficultyRange(min=35, max=65)
    return DifficultyRange(min=55, max=100)


def get_level_title(level: int) -> str:
    title = LEVEL_TITLES[1]
    for threshold in sorted(LEVEL_TITLES):
        if level >= threshold:
            title = LEVEL_TITLES[threshold]
    return title


def get_level_info(level: int) -> LevelInfo:
    """Title, XP threshold and suggested difficulty range of a level."""
    if not (1 <= level <= MAX_LEVEL):
        raise InvalidParameterError(f"Level must be between 1 and {MAX_LEVEL}")
    title = get_level_title(level)
    return LevelInfo(
        level=level,
        xp_required=(level - 1) * XP_PER_LEVEL,
        difficulty_range=get_difficulty_bounds(level),
        title=title,
        description=f"Level {level} {title}",
    )


def generate_celebration(
    leveled_up: bool,
    new_level: int,
    old_streak: int,
    new_streak: int,
    old_xp: int,
    new_xp: int
) -> Optional[CelebrationData]:
    """
    Pick the most notable milestone of a session, if any.

    Level-ups win over streak milestones, which win over XP milestones
    (crossing a multiple of 500 cumulative XP).
    """
    if leveled_up:
        return CelebrationData(
            type='level_up',
            message=f"Congratulations! You've reached Level {new_level}!",
            milestone=new_level,
        )

    if new_streak != old_streak and new_streak in STREAK_MILESTONES:
        return CelebrationData(
            type='streak_milestone',
            message=f"Amazing! {new_streak} day streak achieved!",
            milestone=new_streak,
        )

    if new_xp // XP_MILESTONE_STEP > old_xp // XP_MILESTONE_STEP:
        milestone = (new_xp // XP_MILESTONE_STEP) * XP_MILESTONE_STEP
        return CelebrationData(
            type='xp_milestone',
            message=f"Great work! You've passed {milestone} XP!",
            milestone=milestone,
        )

    return None


def validate_session_summary(summary: SessionSummary) -> None:
    """
    Validate session totals.

    Raises:
        ValidationError: If the totals are inconsistent
    """
    if summary.questions_answered is None or summary.questions_answered < 1:
        raise ValidationError("Questions answered must be at least 1")
    if summary.correct_answers is None or summary.correct_answers < 0:
        raise ValidationError("Correct answers must be non-negative")
    if summary.correct_answers > summary.questions_answered:
        raise ValidationError("Correct answers cannot exceed total questions")
    if summary.xp_earned_raw is not None and summary.xp_earned_raw < 0:
        raise ValidationError("Raw XP must be non-negative")
    if summary.duration_seconds is not None and summary.duration_seconds < 1:
        raise ValidationError("Session duration must be positive")


# ============================================================================
# Persistence helpers
# ============================================================================

def _get_user_or_raise(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    return user


def _read_progression(session: Session, user_id: int) -> Optional[UserProgression]:
    statement = (
        select(UserProgression)
        .where(UserProgression.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()


def _versioned_update(session: Session, progression: UserProgression, values: Dict[str, Any]) -> int:
    """Update a progression row if nobody else did since it was read; returns the new version."""
    new_version = progression.version + 1
    result = session.execute(
        update(UserProgression)
        .where(UserProgression.id == progression.id)
        .where(UserProgression.version == progression.version)
        .values(version=new_version, **values)
    )
    if result.rowcount != 1:
        raise _StaleVersion()
    return new_version


def _session_key_taken(session: Session, user_id: int, session_key: Optional[str]) -> bool:
    if not session_key:
        return False
    existing = session.exec(
        select(ProgressionSession.id)
        .where(ProgressionSession.user_id == user_id)
        .where(ProgressionSession.session_key == session_key)
    ).first()
    return existing is not None


def _accuracy(correct: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(correct / total * 100, 2)


def _to_response(user_id: int, progression: Optional[UserProgression]) -> ProgressionResponse:
    if progression is None:
        return ProgressionResponse(
            user_id=user_id,
            current_difficulty=settings.default_starting_difficulty,
            xp_for_next_level=xp_for_next_level(1),
            title=get_level_title(1),
        )
    return ProgressionResponse(
        user_id=progression.user_id,
        level=progression.level,
        xp=progression.xp,
        streak=progression.streak,
        current_difficulty=progression.current_difficulty,
        total_sessions=progression.total_sessions,
        total_correct_answers=progression.total_correct_answers,
        total_questions_answered=progression.total_questions_answered,
        last_session_date=progression.last_session_date,
        level_up_date=progression.level_up_date,
        accuracy=_accuracy(progression.total_correct_answers, progression.total_questions_answered),
        xp_progress=xp_progress(progression.xp, progression.level),
        xp_for_next_level=xp_for_next_level(progression.level),
        title=get_level_title(progression.level),
    )


# ============================================================================
# Engine operations
# ============================================================================

def apply_session(
    session: Session,
    user_id: int,
    summary: Union[SessionSummary, Dict[str, Any]]
) -> ProgressionUpdate:
    """
    Apply a completed session to a user's progression.

    Creates the progression record on first use. The difficulty band is
    nudged once per session. A stale version or a concurrent first insert
    rolls back and retries from a fresh read; a session key that was already
    applied is rejected.

    Args:
        session: Database session
        user_id: User ID
        summary: Session totals (SessionSummary or a dict with the same keys)

    Returns:
        ProgressionUpdate with the new progression and what changed

    Raises:
        NotFoundError: If the user does not exist
        ValidationError: If the session totals are inconsistent
        ConflictError: If the session key was already applied or retries ran out
    """
    if not isinstance(summary, SessionSummary):
        summary = SessionSummary(**summary)
    validate_session_summary(summary)
    _get_user_or_raise(session, user_id)

    session_date = summary.session_date or utctoday()
    attempts = settings.max_conflict_retries + 1

    for attempt in range(1, attempts + 1):
        if _session_key_taken(session, user_id, summary.session_key):
            raise ConflictError(f"Session '{summary.session_key}' was already applied for user {user_id}")

        progression = _read_progression(session, user_id)
        is_new = progression is None

        old_level = 1 if is_new else progression.level
        old_xp = 0 if is_new else progression.xp
        old_streak = 0 if is_new else progression.streak
        old_difficulty = settings.default_starting_difficulty if is_new else progression.current_difficulty
        last_session_date = None if is_new else progression.last_session_date

        accuracy = summary.correct_answers / summary.questions_answered
        xp_earned = calculate_session_xp(
            summary.correct_answers,
            summary.questions_answered,
            old_difficulty,
            summary.duration_seconds,
        )
        if summary.xp_earned_raw:
            xp_earned += min(summary.xp_earned_raw, settings.max_raw_xp_bonus)

        new_xp = old_xp + xp_earned
        new_level = max(old_level, calculate_level(new_xp))
        leveled_up = new_level > old_level
        new_streak = calculate_streak(last_session_date, session_date, old_streak)
        new_difficulty = adjust_difficulty(old_difficulty, accuracy)
        now = utcnow()

        values = {
            "level": new_level,
            "xp": new_xp,
            "streak": new_streak,
            "current_difficulty": new_difficulty,
            "total_sessions": (0 if is_new else progression.total_sessions) + 1,
            "total_correct_answers": (0 if is_new else progression.total_correct_answers) + summary.correct_answers,
            "total_questions_answered": (
                (0 if is_new else progression.total_questions_answered) + summary.questions_answered
            ),
            "last_session_date": max(last_session_date, session_date) if last_session_date else session_date,
            "level_up_date": now if leveled_up else (None if is_new else progression.level_up_date),
            "updated_at": now,
        }

        audit = ProgressionSession(
            user_id=user_id,
            session_key=summary.session_key,
            session_date=session_date,
            starting_difficulty=old_difficulty,
            ending_difficulty=new_difficulty,
            xp_earned=xp_earned,
            questions_answered=summary.questions_answered,
            correct_answers=summary.correct_answers,
            session_accuracy=round(accuracy * 100, 2),
            difficulty_adjustments=1 if new_difficulty != old_difficulty else 0,
            created_at=now,
        )

        try:
            if is_new:
                progression = UserProgression(user_id=user_id, version=1, created_at=now, **values)
                session.add(progression)
                session.flush()
            else:
                _versioned_update(session, progression, values)
            session.add(audit)
            session.commit()
        except (IntegrityError, _StaleVersion):
            session.rollback()
            logger.warning(
                f"Concurrent progression update for user {user_id} "
                f"(attempt {attempt}/{attempts}), retrying"
            )
            continue

        session.refresh(audit)
        progression = _read_progression(session, user_id)
        logger.info(
            f"Applied session for user {user_id}: +{xp_earned} XP, level {old_level}->{new_level}, "
            f"difficulty {old_difficulty}->{new_difficulty}, streak {new_streak}"
        )

        celebration = generate_celebration(leveled_up, new_level, old_streak, new_streak, old_xp, new_xp)
        if leveled_up:
            level_up.send(user_id, old_level=old_level, new_level=new_level, xp=new_xp)
        if celebration is not None:
            milestone_reached.send(user_id, celebration=celebration)

        return ProgressionUpdate(
            progression=_to_response(user_id, progression),
            session_id=audit.id,
            xp_earned=xp_earned,
            leveled_up=leveled_up,
            old_level=old_level,
            new_level=new_level,
            old_difficulty=old_difficulty,
            new_difficulty=new_difficulty,
            difficulty_adjusted=new_difficulty != old_difficulty,
            streak=new_streak,
            celebration=celebration,
        )

    logger.error(f"Giving up on progression update for user {user_id} after {attempts} attempts")
    raise ConflictError(f"Concurrent progression updates for user {user_id}; try again")


def summarize_session(session: Session, user_id: int, session_key: str) -> SessionSummary:
    """
    Build a session summary from the answer log of a session.

    Raises:
        NotFoundError: If the user does not exist or no answers were logged for the session
    """
    _get_user_or_raise(session, user_id)
    results = session.exec(
        select(ExerciseResult)
        .where(ExerciseResult.user_id == user_id)
        .where(ExerciseResult.session_key == session_key)
        .order_by(ExerciseResult.created_at)
    ).all()
    if not results:
        raise NotFoundError(f"No answers logged for session '{session_key}'")

    started = results[0].created_at
    finished = results[-1].created_at
    duration = int((finished - started).total_seconds())
    duration += int((results[-1].time_taken_ms or 0) / 1000)

    return SessionSummary(
        questions_answered=len(results),
        correct_answers=sum(1 for result in results if result.correct),
        session_date=started.date(),
        session_key=session_key,
        duration_seconds=duration if duration > 0 else None,
    )


def get_user_progression(session: Session, user_id: int) -> ProgressionResponse:
    """Current progression of a user; defaults when the user has no sessions yet."""
    _get_user_or_raise(session, user_id)
    return _to_response(user_id, _read_progression(session, user_id))


def get_progression_history(
    session: Session,
    user_id: int,
    limit: int = 20,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[ProgressionSession]:
    """Applied sessions of a user, newest first."""
    _get_user_or_raise(session, user_id)
    if not (1 <= limit <= 100):
        raise InvalidParameterError("Limit must be between 1 and 100")
    if start_date and end_date and start_date > end_date:
        raise InvalidParameterError("start_date cannot be after end_date")

    statement = select(ProgressionSession).where(ProgressionSession.user_id == user_id)
    if start_date:
        statement = statement.where(ProgressionSession.session_date >= start_date)
    if end_date:
        statement = statement.where(ProgressionSession.session_date <= end_date)
    statement = statement.order_by(ProgressionSession.created_at.desc(), ProgressionSession.id.desc()).limit(limit)
    return list(session.exec(statement).all())


def get_progression_stats(
    session: Session,
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    trend_sessions: int = 10
) -> ProgressionStatsResponse:
    """Progression record, aggregates over sessions and the recent difficulty trend."""
    _get_user_or_raise(session, user_id)
    progression = _read_progression(session, user_id)
    if progression is None:
        raise NotFoundError(f"User {user_id} has no progression yet")

    statement = select(ProgressionSession).where(ProgressionSession.user_id == user_id)
    if start_date:
        statement = statement.where(ProgressionSession.session_date >= start_date)
    if end_date:
        statement = statement.where(ProgressionSession.session_date <= end_date)
    sessions = session.exec(statement.order_by(ProgressionSession.created_at, ProgressionSession.id)).all()

    stats = SessionStats()
    if sessions:
        stats.total_sessions = len(sessions)
        stats.total_questions = sum(s.questions_answered for s in sessions)
        stats.total_correct = sum(s.correct_answers for s in sessions)
        stats.total_xp = sum(s.xp_earned for s in sessions)
        stats.avg_accuracy = round(sum(s.session_accuracy for s in sessions) / len(sessions), 2)
        stats.best_accuracy = max(s.session_accuracy for s in sessions)
        stats.avg_xp_per_session = round(stats.total_xp / len(sessions), 2)

    trend = [
        DifficultyTrendPoint(
            session_date=s.session_date,
            ending_difficulty=s.ending_difficulty,
            session_accuracy=s.session_accuracy,
        )
        for s in sessions[-trend_sessions:]
    ]

    return ProgressionStatsResponse(
        progression=_to_response(user_id, progression),
        session_stats=stats,
        difficulty_trend=trend,
    )


def get_level_progression() -> LevelProgressionResponse:
    """Table of all levels with titles, XP thresholds and difficulty ranges."""
    return LevelProgressionResponse(levels=[get_level_info(level) for level in range(1, MAX_LEVEL + 1)])


def get_leaderboard(session: Session, limit: int = 10, order_by: str = "level") -> LeaderboardResponse:
    """Top users by level (then XP) or by XP."""
    if order_by not in LEADERBOARD_ORDERS:
        raise InvalidParameterError(f"order_by must be one of: {', '.join(LEADERBOARD_ORDERS)}")
    if not (1 <= limit <= 100):
        raise InvalidParameterError("Limit must be between 1 and 100")

    statement = select(UserProgression, User).join(User, User.id == UserProgression.user_id)
    if order_by == "level":
        statement = statement.order_by(UserProgression.level.desc(), UserProgression.xp.desc(), UserProgression.user_id)
    else:
        statement = statement.order_by(UserProgression.xp.desc(), UserProgression.user_id)

    entries = []
    for rank, (progression, user) in enumerate(session.exec(statement.limit(limit)).all(), start=1):
        entries.append(LeaderboardEntry(
            rank=rank,
            user_id=progression.user_id,
            name=user.name,
            level=progression.level,
            xp=progression.xp,
            streak=progression.streak,
            accuracy=_accuracy(progression.total_correct_answers, progression.total_questions_answered),
        ))
    return LeaderboardResponse(order_by=order_by, entries=entries)


def get_progression_projection(
    session: Session,
    user_id: int,
    sessions_per_week: float = 3,
    avg_accuracy: float = 0.7
) -> ProgressionProjection:
    """
    Project a user's XP and level 30 days ahead at a given pace.

    A typical session is assumed to be 10 questions at the user's current
    difficulty band.
    """
    if not (0 < sessions_per_week <= 50):
        raise InvalidParameterError("sessions_per_week must be between 0 and 50")
    if not (0 <= avg_accuracy <= 1):
        raise InvalidParameterError("avg_accuracy must be between 0 and 1")
    _get_user_or_raise(session, user_id)
    progression = _read_progression(session, user_id)
    if progression is None:
        raise NotFoundError(f"User {user_id} has no progression yet")

    avg_xp_per_session = calculate_session_xp(10, 10, progression.current_difficulty) * avg_accuracy
    weekly_xp = avg_xp_per_session * sessions_per_week

    weeks_to_next_level = None
    next_level_xp = xp_for_next_level(progression.level)
    if next_level_xp and weekly_xp > 0:
        weeks_to_next_level = math.ceil((next_level_xp - progression.xp) / weekly_xp)

    projected_xp = progression.xp + weekly_xp * 30 / 7
    return ProgressionProjection(
        current_level=progression.level,
        current_xp=progression.xp,
        avg_xp_per_session=round(avg_xp_per_session),
        weeks_to_next_level=weeks_to_next_level,
        projected_level_in_30_days=calculate_level(int(projected_xp)),
        projected_xp_in_30_days=round(projected_xp),
    )


def reset_progression(session: Session, user_id: int) -> ResetProgressionResponse:
    """
    Restart a user's streak and difficulty band (admin operation).

    The streak drops to 0 and the difficulty band returns to the starting
    difficulty. XP, level, the lifetime totals and the session history are
    kept, so XP never decreases and the totals never shrink.

    Raises:
        NotFoundError: If the user has no progression
        ConflictError: If a session was applied concurrently
    """
    _get_user_or_raise(session, user_id)
    progression = _read_progression(session, user_id)
    if progression is None:
        raise NotFoundError(f"User {user_id} has no progression yet")

    try:
        _versioned_update(session, progression, {
            "streak": 0,
            "current_difficulty": settings.default_starting_difficulty,
            "updated_at": utcnow(),
        })
        session.commit()
    except _StaleVersion:
        session.rollback()
        raise ConflictError(f"Progression of user {user_id} changed during reset; try again")

    logger.info(f"Reset streak and difficulty band for user {user_id}")
    return ResetProgressionResponse(success=True, message="Streak and difficulty reset; XP and level kept")
