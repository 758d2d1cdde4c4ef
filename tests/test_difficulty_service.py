"""
Tests for the card difficulty classifier.

Tests cover:
- Component score bounds and the total
- Tier thresholds and card categories
- Persistence: one difficulty row per card, re-classification on edit
- Deck batch operations and range queries
"""
import pytest
from sqlmodel import Session, select

from lokalny.core.exceptions import InvalidParameterError, NotFoundError, ValidationError
from lokalny.models.models import Card, CardDifficulty
from lokalny.models.enums import CardCategory, DifficultyLevel
from lokalny.services import card_service, difficulty_service
from lokalny.services.difficulty_service import (
    calculate_card_difficulty,
    calculate_grammar_score,
    categorize_text,
    classify_difficulty_level,
    extract_topic_category,
)

LONG_FRONT = (
    "Gdybym wiedział, że przyjdziesz, zostałbym w domu, "
    "który stoi przy szczęśliwej ulicy nad rzeką!"
)
LONG_BACK = (
    "If I had known you would come, I would have stayed at home, "
    "which stands by a happy street near the river!"
)


class TestCalculateCardDifficulty:
    """Pure scoring of card content."""

    def test_single_word_scores(self):
        breakdown = calculate_card_difficulty("kot", "cat")

        assert breakdown.vocabulary_score == 15
        assert breakdown.grammar_score == 10
        assert breakdown.length_score == 1
        assert breakdown.type_score == 2
        assert breakdown.total_difficulty == 28
        assert breakdown.difficulty_level == DifficultyLevel.BEGINNER
        assert breakdown.category == CardCategory.WORD
        assert breakdown.word_length == 3.0

    def test_long_sentence_is_advanced(self):
        breakdown = calculate_card_difficulty(LONG_FRONT, LONG_BACK)

        assert breakdown.category == CardCategory.SENTENCE
        assert breakdown.total_difficulty >= 60
        assert breakdown.difficulty_level == DifficultyLevel.ADVANCED

    @pytest.mark.parametrize("front,back,tags", [
        ("kot", "cat", ""),
        ("Jak się masz?", "How are you?", "phrases"),
        (LONG_FRONT, LONG_BACK, "grammar,conjugation"),
        ("x" * 500, "y " * 300, "declension"),
    ])
    def test_components_stay_in_bounds(self, front, back, tags):
        breakdown = calculate_card_difficulty(front, back, tags)

        assert 0 <= breakdown.vocabulary_score <= 30
        assert 0 <= breakdown.grammar_score <= 40
        assert 0 <= breakdown.length_score <= 20
        assert 0 <= breakdown.type_score <= 10
        assert breakdown.total_difficulty == (
            breakdown.vocabulary_score + breakdown.grammar_score
            + breakdown.length_score + breakdown.type_score
        )
        assert 0 <= breakdown.total_difficulty <= 100

    def test_is_deterministic(self):
        first = calculate_card_difficulty(LONG_FRONT, LONG_BACK, "grammar")
        second = calculate_card_difficulty(LONG_FRONT, LONG_BACK, "grammar")
        assert first == second

    def test_html_is_stripped_before_scoring(self):
        assert calculate_card_difficulty("<b>kot</b>", "cat&nbsp;") == calculate_card_difficulty("kot", "cat")

    @pytest.mark.parametrize("front,back", [("", "cat"), ("kot", "   "), ("<br>", "cat")])
    def test_empty_side_is_rejected(self, front, back):
        with pytest.raises(ValidationError):
            calculate_card_difficulty(front, back)

    def test_grammar_tags_add_points(self):
        assert calculate_grammar_score("kot", "conjugation") == calculate_grammar_score("kot") + 5


class TestClassification:
    """Tier thresholds, categories and topics."""

    @pytest.mark.parametrize("total,expected", [
        (0, DifficultyLevel.BEGINNER),
        (34, DifficultyLevel.BEGINNER),
        (35, DifficultyLevel.INTERMEDIATE),
        (59, DifficultyLevel.INTERMEDIATE),
        (60, DifficultyLevel.ADVANCED),
        (100, DifficultyLevel.ADVANCED),
    ])
    def test_tier_thresholds(self, total, expected):
        assert classify_difficulty_level(total) == expected

    @pytest.mark.parametrize("front,expected", [
        ("kot", CardCategory.WORD),
        ("dobry wieczór", CardCategory.PHRASE),
        ("Jak się masz?", CardCategory.SENTENCE),
        ("to jest bardzo duży dom", CardCategory.SENTENCE),
    ])
    def test_categories(self, front, expected):
        assert categorize_text(front) == expected

    def test_topic_from_tags_wins(self):
        assert extract_topic_category("pies", "dog", "food,lesson1") == "food"

    def test_topic_from_content(self):
        assert extract_topic_category("pies", "dog") == "animal"

    def test_topic_defaults_to_general(self):
        assert extract_topic_category("xyz", "qwe") == "general"


class TestCardPersistence:
    """Stored difficulty rows and card edits."""

    def test_create_card_classifies(self, session, card):
        difficulty = session.exec(select(CardDifficulty).where(CardDifficulty.card_id == card.id)).one()

        assert difficulty.total_difficulty == 28
        assert card.difficulty_level == DifficultyLevel.BEGINNER
        assert card.topic_category == "animal"

    def test_reclassifying_replaces_row(self, session, card):
        difficulty_service.classify_card(session, card)
        difficulty_service.classify_card(session, card)

        rows = session.exec(select(CardDifficulty).where(CardDifficulty.card_id == card.id)).all()
        assert len(rows) == 1

    def test_edit_triggers_reclassification(self, session, card):
        card_service.update_card(session, card.id, front=LONG_FRONT, back=LONG_BACK)

        rows = session.exec(select(CardDifficulty).where(CardDifficulty.card_id == card.id)).all()
        assert len(rows) == 1
        assert rows[0].total_difficulty >= 60
        assert card.difficulty_level == DifficultyLevel.ADVANCED
        assert card.updated_at is not None

    def test_edit_to_empty_is_rejected(self, session, card):
        with pytest.raises(ValidationError):
            card_service.update_card(session, card.id, front="  ")

    def test_rejected_edit_leaves_card_untouched(self, engine, session, card):
        with pytest.raises(ValidationError):
            card_service.update_card(session, card.id, front="pies", back="  ")

        assert card.front == "kot"
        assert not session.dirty
        session.commit()
        with Session(engine) as fresh:
            stored = fresh.get(Card, card.id)
            assert stored.front == "kot"
            assert stored.back == "cat"
            assert stored.updated_at is None

    def test_create_card_rejects_empty_text(self, session, deck):
        with pytest.raises(ValidationError):
            card_service.create_card(session, deck.id, "", "cat")

    def test_create_card_unknown_deck(self, session):
        with pytest.raises(NotFoundError):
            card_service.create_card(session, 999, "kot", "cat")

    def test_get_card_difficulty_computes_lazily(self, session, deck, make_unclassified_card):
        card = make_unclassified_card(deck, "pies", "dog")

        difficulty = difficulty_service.get_card_difficulty(session, card.id)

        assert difficulty.card_id == card.id
        assert card.difficulty_level is not None

    def test_get_card_difficulty_unknown_card(self, session):
        with pytest.raises(NotFoundError):
            difficulty_service.get_card_difficulty(session, 12345)

    def test_delete_card_difficulty(self, session, card):
        assert difficulty_service.delete_card_difficulty(session, card.id) is True
        assert difficulty_service.delete_card_difficulty(session, card.id) is False


class TestDeckOperations:
    """Batch classification, statistics and range queries."""

    def test_calculate_deck_difficulties_skips_classified(self, session, deck, make_card, make_unclassified_card):
        make_card(deck, "kot", "cat")
        make_card(deck, "pies", "dog")
        make_unclassified_card(deck, "dom", "house")

        result = difficulty_service.calculate_deck_difficulties(session, deck.id)

        assert result.total_cards == 3
        assert result.processed == 1
        assert result.skipped == 2
        assert result.errors == 0
        assert result.success

    def test_calculate_deck_difficulties_force(self, session, deck, make_card):
        make_card(deck, "kot", "cat")
        make_card(deck, "pies", "dog")

        result = difficulty_service.calculate_deck_difficulties(session, deck.id, force=True)

        assert result.processed == 2
        assert result.skipped == 0

    def test_deck_stats(self, session, deck, make_card, make_unclassified_card):
        make_card(deck, "kot", "cat")
        make_card(deck, LONG_FRONT, LONG_BACK)
        make_unclassified_card(deck, "dom", "house")

        stats = difficulty_service.get_deck_difficulty_stats(session, deck.id)

        assert stats.total_cards == 3
        assert stats.classified_cards == 2
        assert stats.min_difficulty == 28
        assert stats.max_difficulty >= 60
        assert stats.distribution["beginner"] == 1
        assert stats.distribution["advanced"] == 1
        assert sum(stats.distribution.values()) == 2

    def test_cards_by_difficulty_range(self, session, deck, make_card):
        easy = make_card(deck, "kot", "cat")
        make_card(deck, LONG_FRONT, LONG_BACK)

        cards = difficulty_service.get_cards_by_difficulty(session, deck.id, 0, 40)

        assert [c.id for c in cards] == [easy.id]

    @pytest.mark.parametrize("min_d,max_d,limit", [(50, 10, 10), (-1, 10, 10), (0, 101, 10), (0, 100, 0), (0, 100, 101)])
    def test_cards_by_difficulty_validates(self, session, deck, min_d, max_d, limit):
        with pytest.raises(InvalidParameterError):
            difficulty_service.get_cards_by_difficulty(session, deck.id, min_d, max_d, limit)

    def test_unknown_deck(self, session):
        with pytest.raises(NotFoundError):
            difficulty_service.get_deck_difficulty_stats(session, 404)
