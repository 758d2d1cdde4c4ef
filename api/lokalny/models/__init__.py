"""
Models package - imports all models so they register with SQLModel.
"""
from lokalny.models.models import (
    DifficultyLevel,
    MasteryLevel,
    CardCategory,
    QuestionType,
    User,
    Deck,
    Card,
    CardDifficulty,
    UserCardProgress,
    UserProgression,
    ProgressionSession,
    ExerciseResult,
)

__all__ = [
    'DifficultyLevel',
    'MasteryLevel',
    'CardCategory',
    'QuestionType',
    'User',
    'Deck',
    'Card',
    'CardDifficulty',
    'UserCardProgress',
    'UserProgression',
    'ProgressionSession',
    'ExerciseResult',
]
