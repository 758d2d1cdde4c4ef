"""
Parameter parsing helpers shared by the engine services and endpoints.

Every helper raises InvalidParameterError for values outside the recognized set.
"""
from typing import List, Optional, Sequence, Union

from lokalny.core.exceptions import InvalidParameterError
from lokalny.models.enums import DifficultyLevel, QuestionType

DIFFICULTY_FILTER_ALL = "all"


def parse_deck_ids(deck_ids: Union[int, str, Sequence[int], None]) -> List[int]:
    """Parse a deck id, a comma-separated string or a list of ids into a list of ids."""
    if deck_ids is None or deck_ids == "":
        raise InvalidParameterError("At least one deck id is required")
    if isinstance(deck_ids, bool):
        raise InvalidParameterError("deck_ids must be integers")
    if isinstance(deck_ids, int):
        return [deck_ids]
    if isinstance(deck_ids, str):
        try:
            parsed = [int(did.strip()) for did in deck_ids.split(',') if did.strip()]
        except ValueError as exc:
            raise InvalidParameterError("deck_ids must be comma-separated integers") from exc
    else:
        try:
            parsed = [int(did) for did in deck_ids]
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError("deck_ids must be integers") from exc
    if not parsed:
        raise InvalidParameterError("At least one deck id is required")
    # Preserve order, drop repeats
    return list(dict.fromkeys(parsed))


def parse_question_type(question_type: Union[str, QuestionType]) -> QuestionType:
    """Parse one question type."""
    if isinstance(question_type, QuestionType):
        return question_type
    try:
        return QuestionType(str(question_type).strip().lower())
    except ValueError as exc:
        valid = ", ".join(qt.value for qt in QuestionType)
        raise InvalidParameterError(
            f"Invalid question type: {question_type}. Must be one of: {valid}"
        ) from exc


def parse_question_types(
    question_types: Union[str, Sequence[Union[str, QuestionType]], None]
) -> Optional[List[QuestionType]]:
    """Parse a comma-separated string or a list of question types; None when nothing was given."""
    if not question_types:
        return None
    if isinstance(question_types, str):
        question_types = [qt for qt in question_types.split(',') if qt.strip()]
    parsed = [parse_question_type(qt) for qt in question_types]
    return list(dict.fromkeys(parsed)) or None


def parse_difficulty_filter(difficulty: Union[str, DifficultyLevel, None]) -> Optional[DifficultyLevel]:
    """Parse a difficulty tier filter; 'all' (or nothing) means no filter and returns None."""
    if difficulty is None:
        return None
    if isinstance(difficulty, DifficultyLevel):
        return difficulty
    value = str(difficulty).strip().lower()
    if not value or value == DIFFICULTY_FILTER_ALL:
        return None
    try:
        return DifficultyLevel(value)
    except ValueError as exc:
        raise InvalidParameterError(
            f"Invalid difficulty: {difficulty}. Must be one of: all, beginner, intermediate, advanced"
        ) from exc
