"""
Models module - re-exports all models.

Importing this module registers every table with SQLModel.metadata, so
``init_db`` and Alembic's autogenerate see the full schema.
"""
from lokalny.models.enums import DifficultyLevel, MasteryLevel, CardCategory, QuestionType
from lokalny.models.user import User
from lokalny.models.deck import Deck
from lokalny.models.card import Card
from lokalny.models.card_difficulty import CardDifficulty
from lokalny.models.user_card_progress import UserCardProgress
from lokalny.models.user_progression import UserProgression
from lokalny.models.progression_session import ProgressionSession
from lokalny.models.exercise_result import ExerciseResult

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
