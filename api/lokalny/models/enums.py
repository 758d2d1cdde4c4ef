"""
Model enums.
"""
from enum import Enum


class DifficultyLevel(str, Enum):
    """Difficulty tier derived from CardDifficulty.total_difficulty."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class MasteryLevel(str, Enum):
    """Coarse mastery bucket derived from the repetition count of a user-card pair."""
    LEARNING = "learning"
    FAMILIAR = "familiar"
    MASTERED = "mastered"


class CardCategory(str, Enum):
    """Shape of the card's front text."""
    WORD = "word"
    PHRASE = "phrase"
    SENTENCE = "sentence"


class QuestionType(str, Enum):
    """Closed set of question formats a card can be presented in."""
    MULTIPLE_CHOICE = "multiple_choice"
    FILL_BLANK = "fill_blank"
    TRANSLATION_PL_EN = "translation_pl_en"
    TRANSLATION_EN_PL = "translation_en_pl"
    FLASHCARD = "flashcard"
    WORD_ORDER = "word_order"
    PRONUNCIATION = "pronunciation"
