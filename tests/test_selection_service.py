"""
Tests for the question selector.

Tests cover:
- Batch size, uniqueness and the insufficient pool flag
- Due reviews first, only with spaced repetition and an existing progression
- Difficulty tier filter and question type compatibility
- Question payloads: multiple choice options, blanks, translations, word order
- Sampling bias towards the current difficulty band
- Parameter validation and the read-only guarantee
"""
import random
from collections import Counter
from datetime import datetime

import pytest
from sqlmodel import select

from lokalny.core.exceptions import InvalidParameterError, NotFoundError
from lokalny.models.enums import DifficultyLevel, QuestionType
from lokalny.models.models import Card, CardDifficulty
from lokalny.services import progression_service, selection_service, srs_service
from lokalny.services.selection_service import _Candidate, is_compatible, selection_weight, weighted_sample

WORDS = [("kot", "cat"), ("pies", "dog"), ("dom", "house"), ("woda", "water"), ("chleb", "bread"), ("mleko", "milk")]


def _scored_card(session, deck, front, total):
    """Insert a card together with a stored difficulty summing to ``total``."""
    card = Card(deck_id=deck.id, front=front, back="translation")
    session.add(card)
    session.flush()
    vocabulary = min(total, 30)
    grammar = min(total - vocabulary, 40)
    length = min(total - vocabulary - grammar, 20)
    type_score = total - vocabulary - grammar - length
    session.add(CardDifficulty(
        card_id=card.id,
        vocabulary_score=vocabulary,
        grammar_score=grammar,
        length_score=length,
        type_score=type_score,
        total_difficulty=total,
    ))
    session.commit()
    session.refresh(card)
    return card


@pytest.fixture
def word_deck(deck, make_card):
    for front, back in WORDS:
        make_card(deck, front, back)
    return deck


class TestSelectQuestions:
    """Building question batches."""

    def test_small_pool_returns_everything(self, session, user, word_deck):
        batch = selection_service.select_questions(session, user.id, word_deck.id, 10, rng=random.Random(1))

        assert batch.requested == 10
        assert batch.returned == 6
        assert batch.insufficient_pool
        assert len({q.card_id for q in batch.questions}) == 6

    def test_batch_has_requested_size_without_duplicates(self, session, user, word_deck):
        batch = selection_service.select_questions(session, user.id, [word_deck.id], 4, rng=random.Random(2))

        assert batch.returned == 4
        assert not batch.insufficient_pool
        assert len({q.card_id for q in batch.questions}) == 4

    def test_default_question_types(self, session, user, word_deck):
        batch = selection_service.select_questions(session, user.id, word_deck.id, 6, rng=random.Random(3))

        allowed = set(selection_service.DEFAULT_QUESTION_TYPES)
        assert all(q.question_type in allowed for q in batch.questions)

    def test_same_seed_same_batch(self, session, user, word_deck):
        first = selection_service.select_questions(session, user.id, word_deck.id, 3, rng=random.Random(7))
        second = selection_service.select_questions(session, user.id, word_deck.id, 3, rng=random.Random(7))

        assert [(q.card_id, q.question_type) for q in first.questions] == [
            (q.card_id, q.question_type) for q in second.questions
        ]

    def test_multiple_choice_distractors_come_from_pool(self, session, user, word_deck):
        batch = selection_service.select_questions(
            session, user.id, word_deck.id, 6, question_types=["multiple_choice"], rng=random.Random(8)
        )

        backs = {back for _, back in WORDS}
        for question in batch.questions:
            payload = question.payload
            assert len(payload.options) == 4
            assert payload.correct_answer == question.back
            assert payload.options[payload.correct_index] == question.back
            assert set(payload.options) - {question.back} <= backs - {question.back}

    def test_fill_blank_payload(self, session, user, deck, make_card):
        make_card(deck, "dobry dzień", "good day")

        batch = selection_service.select_questions(session, user.id, deck.id, 1, question_types="fill_blank")

        payload = batch.questions[0].payload
        assert payload.prompt == "Fill in the blank: ______ dzień"
        assert payload.correct_answer == "dobry"
        assert payload.blank_position == 0
        assert payload.hint == "Translation: good day"

    def test_translation_payloads(self, session, user, deck, make_card):
        make_card(deck, "kot", "cat")

        pl_en = selection_service.select_questions(session, user.id, deck.id, 1, question_types="translation_pl_en")
        en_pl = selection_service.select_questions(session, user.id, deck.id, 1, question_types="translation_en_pl")

        assert pl_en.questions[0].payload.prompt == "Translate to English: kot"
        assert pl_en.questions[0].payload.correct_answer == "cat"
        assert en_pl.questions[0].payload.prompt == "Translate to Polish: cat"
        assert en_pl.questions[0].payload.correct_answer == "kot"

    def test_multiple_decks(self, session, user, make_deck, make_card):
        first, second = make_deck(), make_deck()
        make_card(first, "kot", "cat")
        make_card(second, "pies", "dog")

        batch = selection_service.select_questions(session, user.id, f"{first.id},{second.id}", 5)

        assert {q.deck_id for q in batch.questions} == {first.id, second.id}

    def test_due_reviews_come_first(self, session, user, word_deck):
        cards = session.exec(select(Card).where(Card.deck_id == word_deck.id).order_by(Card.id)).all()
        progression_service.apply_session(session, user.id, {"questions_answered": 1, "correct_answers": 1})
        srs_service.record_answer(session, user.id, cards[3].id, True, now=datetime(2026, 1, 2))
        srs_service.record_answer(session, user.id, cards[1].id, True, now=datetime(2026, 1, 1))

        batch = selection_service.select_questions(
            session, user.id, word_deck.id, 4, now=datetime(2026, 2, 1), rng=random.Random(4)
        )

        assert batch.due_count == 2
        assert [q.card_id for q in batch.questions[:2]] == [cards[1].id, cards[3].id]
        assert all(q.is_review for q in batch.questions[:2])
        assert not any(q.is_review for q in batch.questions[2:])
        assert batch.questions[0].next_review == datetime(2026, 1, 2)
        assert len({q.card_id for q in batch.questions}) == 4

    def test_due_reviews_are_capped_by_count(self, session, user, word_deck):
        cards = session.exec(select(Card).where(Card.deck_id == word_deck.id)).all()
        progression_service.apply_session(session, user.id, {"questions_answered": 1, "correct_answers": 1})
        for day, card in enumerate(cards, start=1):
            srs_service.record_answer(session, user.id, card.id, False, now=datetime(2026, 1, day))

        batch = selection_service.select_questions(session, user.id, word_deck.id, 3, now=datetime(2026, 2, 1))

        assert batch.due_count == 3
        assert all(q.is_review for q in batch.questions)

    def test_no_due_step_without_progression(self, session, user, word_deck):
        card = session.exec(select(Card).where(Card.deck_id == word_deck.id)).first()
        srs_service.record_answer(session, user.id, card.id, True, now=datetime(2026, 1, 1))

        batch = selection_service.select_questions(session, user.id, word_deck.id, 6, now=datetime(2026, 2, 1))

        assert batch.due_count == 0
        assert not any(q.is_review for q in batch.questions)

    def test_no_due_step_when_spaced_repetition_is_off(self, session, user, word_deck):
        card = session.exec(select(Card).where(Card.deck_id == word_deck.id)).first()
        progression_service.apply_session(session, user.id, {"questions_answered": 1, "correct_answers": 1})
        srs_service.record_answer(session, user.id, card.id, True, now=datetime(2026, 1, 1))

        batch = selection_service.select_questions(
            session, user.id, word_deck.id, 6, use_spaced_repetition=False, now=datetime(2026, 2, 1)
        )

        assert batch.due_count == 0
        assert batch.returned == 6

    def test_not_yet_due_cards_are_sampled_normally(self, session, user, word_deck):
        card = session.exec(select(Card).where(Card.deck_id == word_deck.id)).first()
        progression_service.apply_session(session, user.id, {"questions_answered": 1, "correct_answers": 1})
        srs_service.record_answer(session, user.id, card.id, True, now=datetime(2026, 1, 1))

        batch = selection_service.select_questions(session, user.id, word_deck.id, 6, now=datetime(2026, 1, 1, 12))

        assert batch.due_count == 0
        assert card.id in {q.card_id for q in batch.questions}

    def test_difficulty_tier_filter(self, session, user, deck):
        easy = _scored_card(session, deck, "kot", 20)
        medium = _scored_card(session, deck, "dobry wieczór", 45)
        hard = _scored_card(session, deck, "Chciałbym się dowiedzieć, gdzie jest dworzec.", 80)

        for tier, expected in [("beginner", easy), ("intermediate", medium), ("advanced", hard)]:
            batch = selection_service.select_questions(session, user.id, deck.id, 5, difficulty_filter=tier)
            assert [q.card_id for q in batch.questions] == [expected.id]
            assert batch.questions[0].difficulty_level == DifficultyLevel(tier)

        batch = selection_service.select_questions(session, user.id, deck.id, 5, difficulty_filter="all")
        assert batch.returned == 3

    def test_word_order_needs_two_tokens(self, session, user, deck, make_card):
        make_card(deck, "kot", "cat")
        phrase = make_card(deck, "dobry dzień", "good day")

        batch = selection_service.select_questions(session, user.id, deck.id, 5, question_types=["word_order"])

        assert [q.card_id for q in batch.questions] == [phrase.id]
        assert batch.questions[0].question_type == QuestionType.WORD_ORDER
        assert sorted(batch.questions[0].payload.options) == ["dobry", "dzień"]
        assert batch.questions[0].payload.options != ["dobry", "dzień"]
        assert batch.questions[0].payload.correct_answer == "dobry dzień"
        assert batch.insufficient_pool

    def test_pronunciation_skips_sentences(self, session, user, deck, make_card):
        word = make_card(deck, "dworzec", "station")
        make_card(deck, "Gdzie jest dworzec?", "Where is the station?")

        batch = selection_service.select_questions(session, user.id, deck.id, 5, question_types="pronunciation")

        assert [q.card_id for q in batch.questions] == [word.id]

    def test_unclassified_cards_are_scored_without_writing(self, session, user, deck, make_unclassified_card):
        for front, back in WORDS[:3]:
            make_unclassified_card(deck, front, back)

        batch = selection_service.select_questions(session, user.id, deck.id, 3)

        assert batch.returned == 3
        assert all(q.total_difficulty >= 0 for q in batch.questions)
        assert session.exec(select(CardDifficulty)).first() is None

    def test_empty_deck(self, session, user, deck):
        batch = selection_service.select_questions(session, user.id, deck.id, 3)

        assert batch.returned == 0
        assert batch.insufficient_pool

    @pytest.mark.parametrize("kwargs", [
        {"count": 0},
        {"count": 101},
        {"count": "5"},
        {"count": 5, "difficulty_filter": "expert"},
        {"count": 5, "question_types": ["essay"]},
    ])
    def test_invalid_parameters(self, session, user, word_deck, kwargs):
        with pytest.raises(InvalidParameterError):
            selection_service.select_questions(session, user.id, word_deck.id, **kwargs)

    def test_invalid_scope(self, session, user):
        with pytest.raises(InvalidParameterError):
            selection_service.select_questions(session, user.id, [], 5)

    def test_unknown_user(self, session, word_deck):
        with pytest.raises(NotFoundError):
            selection_service.select_questions(session, 404, word_deck.id, 5)

    def test_unknown_deck(self, session, user, word_deck):
        with pytest.raises(NotFoundError):
            selection_service.select_questions(session, user.id, [word_deck.id, 404], 5)


class TestSampling:
    """Weighting and sampling helpers."""

    def test_selection_weight(self):
        assert selection_weight(10, 10) == 1.0
        assert selection_weight(30, 10, band_width=10) == pytest.approx(1 / 3)
        assert 0 < selection_weight(100, 0) < selection_weight(50, 0)

    def test_bias_towards_current_band(self):
        near = _Candidate(Card(id=1, deck_id=1, front="kot", back="cat"), 10, [QuestionType.FLASHCARD])
        far = _Candidate(Card(id=2, deck_id=1, front="pies", back="dog"), 90, [QuestionType.FLASHCARD])
        rng = random.Random(42)

        picks = Counter(
            weighted_sample([near, far], 1, current_difficulty=10, rng=rng)[0].card.id for _ in range(2000)
        )

        assert picks[1] > 1600

    def test_sample_without_replacement(self):
        candidates = [
            _Candidate(Card(id=i, deck_id=1, front=f"słowo{i}", back="word"), i * 10, [QuestionType.FLASHCARD])
            for i in range(1, 8)
        ]

        sample = weighted_sample(candidates, 5, current_difficulty=40, rng=random.Random(5))

        assert len(sample) == 5
        assert len({c.card.id for c in sample}) == 5

    def test_sample_larger_than_pool(self):
        candidate = _Candidate(Card(id=1, deck_id=1, front="kot", back="cat"), 10, [QuestionType.FLASHCARD])

        assert weighted_sample([candidate], 3, 10, random.Random(0)) == [candidate]
        assert weighted_sample([], 3, 10, random.Random(0)) == []

    def test_compatibility(self):
        word = Card(deck_id=1, front="kot", back="cat")
        phrase = Card(deck_id=1, front="dobry dzień", back="good day")
        sentence = Card(deck_id=1, front="To jest mój dom.", back="This is my house.")

        assert not is_compatible(word, QuestionType.WORD_ORDER)
        assert is_compatible(phrase, QuestionType.WORD_ORDER)
        assert is_compatible(word, QuestionType.PRONUNCIATION)
        assert not is_compatible(sentence, QuestionType.PRONUNCIATION)
        assert is_compatible(sentence, QuestionType.FILL_BLANK)
