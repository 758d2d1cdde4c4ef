"""
User service for business logic related to user operations.
"""
import logging
from sqlmodel import Session, select
from typing import Dict, Any

from lokalny.core.exceptions import NotFoundError, ValidationError, ConflictError
from lokalny.models.models import (
    User, UserCardProgress, UserProgression, ProgressionSession, ExerciseResult
)

logger = logging.getLogger(__name__)


def create_user(session: Session, name: str) -> User:
    """
    Create a user.

    Raises:
        ValidationError: If the name is empty
        ConflictError: If the name is taken
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("User name must not be empty")
    if session.exec(select(User).where(User.name == name)).first():
        raise ConflictError(f"User '{name}' already exists")

    user = User(name=name)
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Created user {user.id} ({user.name})")
    return user


def get_user(session: Session, user_id: int) -> User:
    """Get a user by id or raise NotFoundError."""
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    return user


def delete_user_data(
    session: Session,
    user_id: int
) -> Dict[str, Any]:
    """
    Delete all learning data of a user, keeping the user row.

    Removes exercise results, card progress, progression sessions and the
    progression record in one transaction.

    Args:
        session: Database session
        user_id: The user ID whose data should be deleted

    Returns:
        Dict with counts of deleted items:
        {
            'exercise_results_deleted': int,
            'card_progress_deleted': int,
            'progression_sessions_deleted': int,
            'progression_deleted': int
        }

    Raises:
        NotFoundError: If user not found
    """
    get_user(session, user_id)

    counts = {}
    for key, model in (
        ('exercise_results_deleted', ExerciseResult),
        ('card_progress_deleted', UserCardProgress),
        ('progression_sessions_deleted', ProgressionSession),
        ('progression_deleted', UserProgression),
    ):
        rows = session.exec(select(model).where(model.user_id == user_id)).all()
        counts[key] = len(rows)
        for row in rows:
            session.delete(row)

    session.commit()

    logger.info(
        f"Deleted user data for user {user_id}: "
        f"{counts['exercise_results_deleted']} exercise results, "
        f"{counts['card_progress_deleted']} card progress rows, "
        f"{counts['progression_sessions_deleted']} progression sessions"
    )

    return counts
