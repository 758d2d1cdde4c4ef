"""
Card difficulty classification service.

Scores each card on four bounded components (vocabulary, grammar, length and
type), stores the breakdown in CardDifficulty and keeps the card's derived
difficulty tier in sync. Scoring is pure and deterministic; only
``classify_card`` and the batch helpers touch the database.
"""
import logging
import re
from typing import Dict, List, Optional

from sqlmodel import Session, select
from sqlalchemy import func

from lokalny.core.config import settings
from lokalny.core.exceptions import NotFoundError, ValidationError, InvalidParameterError
from lokalny.models.card import Card
from lokalny.models.card_difficulty import CardDifficulty
from lokalny.models.deck import Deck
from lokalny.models.enums import CardCategory, DifficultyLevel
from lokalny.schemas.card import (
    DifficultyBreakdown,
    DeckDifficultyCalculationResponse,
    DeckDifficultyStatsResponse,
)
from lokalny.utils.text_utils import normalize_card_text, tokenize, bare_word
from lokalny.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


MAX_VOCABULARY_SCORE = 30
MAX_GRAMMAR_SCORE = 40
MAX_LENGTH_SCORE = 20
MAX_TYPE_SCORE = 10

# Frequent Polish words; a front made mostly of other words gets a rarity bump
COMMON_POLISH_WORDS = frozenset([
    'tak', 'nie', 'co', 'kto', 'gdzie', 'kiedy', 'jak', 'dlaczego',
    'jest', 'jestem', 'jesteś', 'są', 'być', 'mieć', 'mam', 'masz', 'ma',
    'dom', 'człowiek', 'dzień', 'czas', 'rok', 'życie', 'świat',
    'dobry', 'duży', 'nowy', 'pierwszy', 'ostatni', 'własny',
    'jeden', 'dwa', 'trzy', 'cztery', 'pięć', 'sześć', 'siedem', 'osiem', 'dziewięć', 'dziesięć',
    'i', 'w', 'na', 'z', 'do', 'to', 'ja', 'ty', 'on', 'ona', 'my', 'wy', 'oni',
])
RARITY_RATIO_THRESHOLD = 0.3
RARITY_BONUS = 5

DIACRITICS_RE = re.compile(r"[ąęćłńóśźż]")
CONSONANT_CLUSTER_RE = re.compile(r"szcz|strz|chrz|drz")
INFLECTION_ENDING_RE = re.compile(r"(?:enie|anie|ienie|ość|ąć|eć)\b")
PARTICLE_RE = re.compile(r"\b(?:się|by|aby|żeby)\b")
RELATIVE_PRONOUN_RE = re.compile(r"\b(?:który|która|które|którzy|których|którym)\b")

GRAMMAR_BASE = 10
GRAMMAR_POINTS = {
    "diacritics": 5,
    "particle": 5,
    "relative_pronoun": 5,
    "consonant_cluster": 3,
    "inflection_ending": 3,
    "question": 3,
    "exclamation": 2,
    "long_sentence": 10,
    "grammar_tag": 5,
}
LONG_SENTENCE_WORDS = 10
GRAMMAR_TAGS = ("conjugation", "declension")

# Tag keywords are checked first, then content patterns
TOPIC_TAG_KEYWORDS = {
    'animal': ['animal', 'zwierzę', 'pet', 'wildlife'],
    'food': ['food', 'jedzenie', 'meal', 'restaurant', 'cooking'],
    'family': ['family', 'rodzina', 'relative', 'parent'],
    'body': ['body', 'ciało', 'health', 'medical'],
    'color': ['color', 'kolor', 'colour'],
    'number': ['number', 'liczba', 'math', 'count'],
    'time': ['time', 'czas', 'date', 'clock', 'calendar'],
    'weather': ['weather', 'pogoda', 'climate'],
    'transport': ['transport', 'travel', 'car', 'bus', 'train'],
    'clothing': ['clothing', 'clothes', 'ubranie', 'fashion'],
    'emotion': ['emotion', 'feeling', 'mood'],
    'verb': ['verb', 'czasownik', 'action'],
    'adjective': ['adjective', 'przymiotnik', 'description'],
    'grammar': ['grammar', 'gramatyka', 'conjugation', 'declension'],
}
TOPIC_CONTENT_PATTERNS = {
    'animal': re.compile(r"\b(?:dog|cat|bird|horse|cow|pig|chicken|fish|kot|pies|ptak|koń)\b", re.IGNORECASE),
    'food': re.compile(r"\b(?:bread|meat|milk|cheese|apple|orange|chleb|mięso|mleko|ser|jabłko)\b", re.IGNORECASE),
    'family': re.compile(r"\b(?:mother|father|sister|brother|child|matka|ojciec|siostra|brat|dziecko)\b", re.IGNORECASE),
    'color': re.compile(
        r"\b(?:red|blue|green|yellow|black|white|czerwony|niebieski|zielony|żółty|czarny|biały)\b",
        re.IGNORECASE
    ),
    'number': re.compile(r"\b(?:one|two|three|four|five|jeden|dwa|trzy|cztery|pięć|\d+)\b", re.IGNORECASE),
}
DEFAULT_TOPIC = "general"


def _clip(value: float, low: int, high: int) -> int:
    return int(max(low, min(high, value)))


def categorize_text(front: str) -> CardCategory:
    """
    Derive the card category from the shape of its front text.

    One token is a word. Five or more tokens, or two or more ending in
    terminal punctuation, is a sentence. Anything else is a phrase.
    """
    tokens = tokenize(front)
    if len(tokens) <= 1:
        return CardCategory.WORD
    if len(tokens) >= 5 or tokens[-1][-1] in ".?!":
        return CardCategory.SENTENCE
    return CardCategory.PHRASE


def calculate_vocabulary_score(front_tokens: List[str], back_tokens: List[str]) -> int:
    """
    Score vocabulary load on a 0-30 scale.

    Args:
        front_tokens: Tokens of the front (Polish) text
        back_tokens: Tokens of the back text

    Returns:
        Vocabulary score
    """
    words = [bare_word(token) for token in front_tokens + back_tokens]
    words = [word for word in words if word]
    if not words:
        return 0

    avg_length = sum(len(word) for word in words) / len(words)
    score = min(len(words) * 2, 15) + min(avg_length * 2, 15)

    front_words = [w for w in (bare_word(token) for token in front_tokens) if w]
    if front_words:
        common_ratio = sum(1 for word in front_words if word in COMMON_POLISH_WORDS) / len(front_words)
        if common_ratio < RARITY_RATIO_THRESHOLD:
            score += RARITY_BONUS

    return _clip(score, 0, MAX_VOCABULARY_SCORE)


def calculate_grammar_score(front: str, tags: str = "") -> int:
    """
    Score grammatical complexity of the front text on a 0-40 scale.

    Args:
        front: Normalized front text
        tags: Card tags

    Returns:
        Grammar score
    """
    text = front.lower()
    score = GRAMMAR_BASE

    if DIACRITICS_RE.search(text):
        score += GRAMMAR_POINTS["diacritics"]
    if PARTICLE_RE.search(text):
        score += GRAMMAR_POINTS["particle"]
    if RELATIVE_PRONOUN_RE.search(text):
        score += GRAMMAR_POINTS["relative_pronoun"]
    if CONSONANT_CLUSTER_RE.search(text):
        score += GRAMMAR_POINTS["consonant_cluster"]
    if INFLECTION_ENDING_RE.search(text):
        score += GRAMMAR_POINTS["inflection_ending"]
    if "?" in text:
        score += GRAMMAR_POINTS["question"]
    if "!" in text:
        score += GRAMMAR_POINTS["exclamation"]
    if len(tokenize(text)) > LONG_SENTENCE_WORDS:
        score += GRAMMAR_POINTS["long_sentence"]

    lower_tags = (tags or "").lower()
    if any(tag in lower_tags for tag in GRAMMAR_TAGS):
        score += GRAMMAR_POINTS["grammar_tag"]

    return _clip(score, 0, MAX_GRAMMAR_SCORE)


def calculate_length_score(front: str, back: str) -> int:
    """Score text length on a 0-20 scale: min(chars/10, 10) + min(words/2, 10), floored."""
    chars = len(front) + len(back)
    words = len(tokenize(front)) + len(tokenize(back))
    return _clip(min(chars / 10, 10) + min(words / 2, 10), 0, MAX_LENGTH_SCORE)


def calculate_type_score(category: CardCategory) -> int:
    """Fixed score contribution of a card category (configurable)."""
    scores = {
        CardCategory.WORD: settings.word_type_score,
        CardCategory.PHRASE: settings.phrase_type_score,
        CardCategory.SENTENCE: settings.sentence_type_score,
    }
    return _clip(scores[category], 0, MAX_TYPE_SCORE)


def classify_difficulty_level(total_difficulty: int) -> DifficultyLevel:
    """
    Map a total difficulty (0-100) to its tier using the configured thresholds.

    Args:
        total_difficulty: Sum of the four component scores

    Returns:
        DifficultyLevel
    """
    if total_difficulty < settings.beginner_max_difficulty:
        return DifficultyLevel.BEGINNER
    if total_difficulty >= settings.advanced_min_difficulty:
        return DifficultyLevel.ADVANCED
    return DifficultyLevel.INTERMEDIATE


def extract_topic_category(front: str, back: str, tags: str = "") -> str:
    """
    Guess a topic category from tags first, then from the card content.

    Args:
        front: Front text
        back: Back text
        tags: Card tags

    Returns:
        Topic category name, 'general' when nothing matches
    """
    lower_tags = (tags or "").lower()
    for category, keywords in TOPIC_TAG_KEYWORDS.items():
        if any(keyword in lower_tags for keyword in keywords):
            return category

    combined = f"{normalize_card_text(front)} {normalize_card_text(back)}"
    for category, pattern in TOPIC_CONTENT_PATTERNS.items():
        if pattern.search(combined):
            return category

    return DEFAULT_TOPIC


def calculate_card_difficulty(front: str, back: str, tags: str = "") -> DifficultyBreakdown:
    """
    Compute the difficulty breakdown of a card.

    HTML is stripped before scoring. The same inputs always produce the same
    breakdown.

    Args:
        front: Front side of the card (Polish)
        back: Back side of the card
        tags: Comma-separated card tags

    Returns:
        DifficultyBreakdown with component scores, total, tier and category

    Raises:
        ValidationError: If front or back is empty after normalization
    """
    front_text = normalize_card_text(front)
    back_text = normalize_card_text(back)
    if not front_text or not back_text:
        raise ValidationError("Card front and back must not be empty")

    front_tokens = tokenize(front_text)
    back_tokens = tokenize(back_text)
    category = categorize_text(front_text)

    vocabulary = calculate_vocabulary_score(front_tokens, back_tokens)
    grammar = calculate_grammar_score(front_text, tags)
    length = calculate_length_score(front_text, back_text)
    type_score = calculate_type_score(category)
    total = vocabulary + grammar + length + type_score

    front_words = [w for w in (bare_word(token) for token in front_tokens) if w]
    word_length = round(sum(len(w) for w in front_words) / len(front_words), 1) if front_words else 0

    return DifficultyBreakdown(
        vocabulary_score=vocabulary,
        grammar_score=grammar,
        length_score=length,
        type_score=type_score,
        total_difficulty=total,
        difficulty_level=classify_difficulty_level(total),
        category=category,
        word_length=word_length,
        topic_category=extract_topic_category(front_text, back_text, tags),
    )


def classify_card(session: Session, card: Card, commit: bool = True) -> CardDifficulty:
    """
    Classify a card and persist its difficulty, replacing any previous row.

    Also updates the card's derived difficulty_level, word_length and
    topic_category.

    Args:
        session: Database session
        card: Card to classify (must have an id)
        commit: Commit the transaction when done (otherwise only flush)

    Returns:
        The stored CardDifficulty row

    Raises:
        ValidationError: If the card's front or back is empty
    """
    breakdown = calculate_card_difficulty(card.front, card.back, card.tags)

    difficulty = session.exec(
        select(CardDifficulty).where(CardDifficulty.card_id == card.id)
    ).first()
    if difficulty is None:
        difficulty = CardDifficulty(card_id=card.id)

    difficulty.vocabulary_score = breakdown.vocabulary_score
    difficulty.grammar_score = breakdown.grammar_score
    difficulty.length_score = breakdown.length_score
    difficulty.type_score = breakdown.type_score
    difficulty.total_difficulty = breakdown.total_difficulty
    difficulty.calculated_at = utcnow()
    session.add(difficulty)

    card.difficulty_level = breakdown.difficulty_level.value
    card.word_length = breakdown.word_length
    card.topic_category = breakdown.topic_category
    session.add(card)

    if commit:
        session.commit()
        session.refresh(difficulty)
    else:
        session.flush()

    logger.info(
        f"Classified card {card.id}: total={breakdown.total_difficulty} "
        f"level={breakdown.difficulty_level.value} category={breakdown.category.value}"
    )
    return difficulty


def get_card_difficulty(session: Session, card_id: int) -> CardDifficulty:
    """
    Get the stored difficulty of a card, computing it on first access.

    Raises:
        NotFoundError: If the card does not exist
    """
    card = session.get(Card, card_id)
    if not card:
        raise NotFoundError(f"Card with id {card_id} not found")

    difficulty = session.exec(
        select(CardDifficulty).where(CardDifficulty.card_id == card_id)
    ).first()
    if difficulty is None:
        difficulty = classify_card(session, card)
    return difficulty


def delete_card_difficulty(session: Session, card_id: int) -> bool:
    """
    Delete the stored difficulty of a card.

    Returns:
        True if a row was deleted, False if the card had none
    """
    difficulty = session.exec(
        select(CardDifficulty).where(CardDifficulty.card_id == card_id)
    ).first()
    if difficulty is None:
        return False
    session.delete(difficulty)
    session.commit()
    return True


def _get_deck_or_raise(session: Session, deck_id: int) -> Deck:
    deck = session.get(Deck, deck_id)
    if not deck:
        raise NotFoundError(f"Deck with id {deck_id} not found")
    return deck


def calculate_deck_difficulties(
    session: Session,
    deck_id: int,
    force: bool = False
) -> DeckDifficultyCalculationResponse:
    """
    Classify every card of a deck.

    Cards that already have a stored difficulty are skipped unless ``force``
    is set. A card that fails validation is counted as an error and the batch
    continues.

    Args:
        session: Database session
        deck_id: Deck to process
        force: Re-classify cards that already have a difficulty

    Returns:
        Processed/skipped/error counts
    """
    _get_deck_or_raise(session, deck_id)
    cards = session.exec(select(Card).where(Card.deck_id == deck_id).order_by(Card.id)).all()
    classified_ids = set(session.exec(
        select(CardDifficulty.card_id).join(Card, Card.id == CardDifficulty.card_id).where(Card.deck_id == deck_id)
    ).all())

    processed = skipped = errors = 0
    for card in cards:
        if card.id in classified_ids and not force:
            skipped += 1
            continue
        try:
            classify_card(session, card, commit=False)
            processed += 1
        except ValidationError as e:
            errors += 1
            logger.warning(f"Skipping card {card.id} in deck {deck_id}: {e}")

    session.commit()
    logger.info(
        f"Deck {deck_id} difficulty calculation: {processed} processed, "
        f"{skipped} skipped, {errors} errors out of {len(cards)}"
    )
    return DeckDifficultyCalculationResponse(
        deck_id=deck_id,
        total_cards=len(cards),
        processed=processed,
        skipped=skipped,
        errors=errors,
        success=errors == 0,
    )


def get_cards_by_difficulty(
    session: Session,
    deck_id: int,
    min_difficulty: int = 0,
    max_difficulty: int = 100,
    limit: int = 50
) -> List[Card]:
    """
    Get classified cards of a deck whose total difficulty lies in a range.

    Raises:
        InvalidParameterError: If the range is outside 0-100, inverted, or limit is not 1-100
    """
    if not (0 <= min_difficulty <= 100) or not (0 <= max_difficulty <= 100):
        raise InvalidParameterError("Difficulty values must be between 0 and 100")
    if min_difficulty > max_difficulty:
        raise InvalidParameterError("min_difficulty cannot be greater than max_difficulty")
    if not (1 <= limit <= 100):
        raise InvalidParameterError("Limit must be between 1 and 100")
    _get_deck_or_raise(session, deck_id)

    statement = (
        select(Card)
        .join(CardDifficulty, CardDifficulty.card_id == Card.id)
        .where(Card.deck_id == deck_id)
        .where(CardDifficulty.total_difficulty >= min_difficulty)
        .where(CardDifficulty.total_difficulty <= max_difficulty)
        .order_by(CardDifficulty.total_difficulty, Card.id)
        .limit(limit)
    )
    return list(session.exec(statement).all())


def get_deck_difficulty_stats(session: Session, deck_id: int) -> DeckDifficultyStatsResponse:
    """Count, average, min and max difficulty of a deck plus its tier distribution."""
    deck = _get_deck_or_raise(session, deck_id)

    total_cards = session.exec(
        select(func.count(Card.id)).where(Card.deck_id == deck_id)
    ).one()
    totals = session.exec(
        select(CardDifficulty.total_difficulty)
        .join(Card, Card.id == CardDifficulty.card_id)
        .where(Card.deck_id == deck_id)
    ).all()

    distribution: Dict[str, int] = {level.value: 0 for level in DifficultyLevel}
    for total in totals:
        distribution[classify_difficulty_level(total).value] += 1

    avg_difficulty: Optional[float] = None
    if totals:
        avg_difficulty = round(sum(totals) / len(totals), 1)

    return DeckDifficultyStatsResponse(
        deck_id=deck.id,
        deck_name=deck.name,
        total_cards=total_cards,
        classified_cards=len(totals),
        avg_difficulty=avg_difficulty,
        min_difficulty=min(totals) if totals else None,
        max_difficulty=max(totals) if totals else None,
        distribution=distribution,
    )
