"""
Question payload service.

Turns a card into what a client shows for one question format (prompt,
multiple choice options, fill-in-the-blank target, shuffled word order
tokens) and judges typed answers against the expected answer. Answer
checking folds Polish diacritics, so "zolw" is accepted for "żółw" with a
spelling note.
"""
import logging
import random
import re
from typing import List, Sequence

from lokalny.models.enums import QuestionType
from lokalny.schemas.review import AnswerCheck
from lokalny.schemas.selection import QuestionPayload
from lokalny.utils.text_utils import normalize_card_text

logger = logging.getLogger(__name__)


DISTRACTOR_COUNT = 3
BLANK_MARKER = "______"

# Short Polish function words that are never blanked out
FUNCTION_WORDS = frozenset({"i", "a", "o", "w", "z", "na", "do", "od", "za", "po", "bez", "przed"})
CONTENT_WORD_MIN_LENGTH = 3
STEM_MIN_LENGTH = 3

# Used when the pool has too few other answers to fill the options
FALLBACK_DISTRACTORS = (
    "dog", "cat", "house", "car", "book", "water", "food", "time", "day", "night",
    "good", "bad", "big", "small", "new", "old", "red", "blue", "green", "black",
    "one", "two", "three", "first", "last", "yes", "no", "hello", "goodbye", "thank you",
)

# Share of significant words a translation must contain
ALTERNATIVE_MATCH_RATIO = 0.6
WHOLE_ANSWER_MATCH_RATIO = 0.5

_POLISH_TO_LATIN = str.maketrans("ąćęłńóśźżĄĆĘŁŃÓŚŹŻ", "acelnoszzACELNOSZZ")
_ALTERNATIVES_RE = re.compile(r"[;,/|]")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_NON_WORD_RE = re.compile(r"[^\w]")
_WHITESPACE_RE = re.compile(r"\s+")


def fold_polish(text: str) -> str:
    """Replace Polish diacritic letters with their Latin base letters."""
    return text.translate(_POLISH_TO_LATIN)


def _clean(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", _PUNCTUATION_RE.sub("", text)).strip()


def _significant_words(text: str) -> List[str]:
    return [word for word in text.split(" ") if len(word) >= CONTENT_WORD_MIN_LENGTH]


def generate_distractors(correct_answer: str, other_answers: Sequence[str], count: int = DISTRACTOR_COUNT) -> List[str]:
    """
    Pick wrong options for a multiple choice question.

    Answers of other cards come first, closest in length to the correct
    answer. Duplicates and the correct answer itself are skipped case
    insensitively; a fixed word list tops the options up when the pool runs
    short.

    Args:
        correct_answer: The right option
        other_answers: Answers of the other cards in the pool
        count: Number of distractors wanted

    Returns:
        Up to ``count`` distractors
    """
    used = {correct_answer.lower()}
    distractors: List[str] = []

    by_length = sorted(
        (answer for answer in other_answers if answer),
        key=lambda answer: abs(len(answer) - len(correct_answer))
    )
    for answer in by_length + list(FALLBACK_DISTRACTORS):
        if len(distractors) >= count:
            break
        if answer.lower() in used:
            continue
        distractors.append(answer)
        used.add(answer.lower())
    return distractors


def find_blank_word(words: Sequence[str], translation: str) -> int:
    """
    Index of the word to blank out of a multi-word front.

    Content words (three letters or more and not a function word) are
    preferred, first the one whose stem shows up in the translation, then
    the first content word. Without content words the longest word is used.
    """
    content_indices = [
        index for index, word in enumerate(words)
        if len(word) >= CONTENT_WORD_MIN_LENGTH and word.lower() not in FUNCTION_WORDS
    ]
    if not content_indices:
        return max(range(len(words)), key=lambda index: len(words[index]))

    translation = translation.lower()
    for index in content_indices:
        word = words[index].lower()
        if word[:max(STEM_MIN_LENGTH, len(word) - 2)] in translation:
            return index
    return content_indices[0]


def expected_answer(front: str, back: str, question_type: QuestionType) -> str:
    """The answer a question of this format expects for a card."""
    front = normalize_card_text(front)
    back = normalize_card_text(back)
    if question_type == QuestionType.FILL_BLANK:
        words = front.split(" ")
        if len(words) == 1:
            return front
        return words[find_blank_word(words, back)]
    if question_type in (QuestionType.TRANSLATION_EN_PL, QuestionType.WORD_ORDER, QuestionType.PRONUNCIATION):
        return front
    return back


def build_payload(
    front: str,
    back: str,
    question_type: QuestionType,
    other_answers: Sequence[str],
    rng: random.Random
) -> QuestionPayload:
    """
    Build the client payload of one question.

    Args:
        front: Polish side of the card
        back: English side of the card
        question_type: Format to present the card in
        other_answers: Backs of the other cards in the pool, for distractors
        rng: Random source for option and token shuffling

    Returns:
        QuestionPayload
    """
    front = normalize_card_text(front)
    back = normalize_card_text(back)
    correct = expected_answer(front, back, question_type)

    if question_type == QuestionType.MULTIPLE_CHOICE:
        options = [correct] + generate_distractors(correct, other_answers)
        rng.shuffle(options)
        return QuestionPayload(
            prompt=front, correct_answer=correct, options=options, correct_index=options.index(correct)
        )

    if question_type == QuestionType.FILL_BLANK:
        words = front.split(" ")
        if len(words) == 1:
            return QuestionPayload(
                prompt=f'What is the Polish word for "{back}"?', correct_answer=correct, blank_position=0
            )
        position = find_blank_word(words, back)
        blanked = list(words)
        blanked[position] = BLANK_MARKER
        return QuestionPayload(
            prompt=f"Fill in the blank: {' '.join(blanked)}",
            correct_answer=correct,
            hint=f"Translation: {back}",
            blank_position=position,
        )

    if question_type == QuestionType.TRANSLATION_PL_EN:
        return QuestionPayload(prompt=f"Translate to English: {front}", correct_answer=correct)

    if question_type == QuestionType.TRANSLATION_EN_PL:
        return QuestionPayload(prompt=f"Translate to Polish: {back}", correct_answer=correct)

    if question_type == QuestionType.WORD_ORDER:
        tokens = front.split(" ")
        shuffled = list(tokens)
        rng.shuffle(shuffled)
        if shuffled == tokens and len(set(tokens)) > 1:
            shuffled = shuffled[1:] + shuffled[:1]
        return QuestionPayload(prompt=f"Put the words in order: {back}", correct_answer=correct, options=shuffled)

    if question_type == QuestionType.PRONUNCIATION:
        return QuestionPayload(prompt=f"Say aloud: {front}", correct_answer=correct, hint=back)

    return QuestionPayload(prompt=front, correct_answer=correct)


def _translation_matches(user: str, expected: str) -> bool:
    """Lenient translation match: alternatives split on ; , / | and partial word overlap."""
    if user == expected:
        return True
    user_folded = fold_polish(user)
    expected_folded = fold_polish(expected)
    if user_folded == expected_folded:
        return True
    user_clean = _clean(user_folded)
    expected_clean = _clean(expected_folded)
    if user_clean == expected_clean:
        return True

    user_words = set(user_clean.split(" "))
    for alternative in _ALTERNATIVES_RE.split(expected):
        alternative = alternative.strip()
        if not alternative:
            continue
        alternative_folded = fold_polish(alternative)
        if user == alternative or user_folded == alternative_folded:
            return True
        alternative_clean = _clean(alternative_folded)
        if user_clean == alternative_clean:
            return True
        significant = _significant_words(alternative_clean)
        if significant:
            matched = sum(1 for word in significant if word in user_words)
            if len(significant) == 1 and matched == 1:
                return True
            if len(significant) > 1 and matched / len(significant) >= ALTERNATIVE_MATCH_RATIO:
                return True

    significant = _significant_words(expected_clean)
    if not significant:
        return False
    matched = sum(1 for word in significant if word in user_words)
    return matched / len(significant) >= WHOLE_ANSWER_MATCH_RATIO


def check_answer(question_type: QuestionType, user_answer: str, correct_answer: str) -> AnswerCheck:
    """
    Judge a typed answer.

    Comparison ignores case and surrounding whitespace. An answer that only
    matches once Polish letters are folded (``zolw`` for ``żółw``) is
    correct and flagged with ``diacritics_ignored``. Fill-in-the-blank also
    accepts the expected word without punctuation; translations accept any
    of the alternatives in the expected answer and substantial word overlap.

    Args:
        question_type: Format the card was presented in
        user_answer: What the user typed
        correct_answer: The expected answer

    Returns:
        AnswerCheck with the verdict and learner feedback
    """
    user = _WHITESPACE_RE.sub(" ", user_answer.strip().lower())
    expected = correct_answer.strip().lower()
    diacritics_ignored = False

    if question_type in (QuestionType.TRANSLATION_PL_EN, QuestionType.TRANSLATION_EN_PL):
        correct = _translation_matches(user, expected)
    else:
        accepted = {expected}
        if question_type == QuestionType.FILL_BLANK:
            accepted.add(_NON_WORD_RE.sub("", expected))
        correct = user in accepted
        if not correct:
            correct = fold_polish(user) in {fold_polish(answer) for answer in accepted}
            diacritics_ignored = correct

    if correct and diacritics_ignored:
        feedback = f"Correct! (Polish spelling: {correct_answer})"
    elif correct:
        feedback = "Correct!"
    else:
        feedback = f"Correct answer: {correct_answer}"

    logger.debug(f"Checked {question_type.value} answer {user_answer!r} against {correct_answer!r}: {correct}")
    return AnswerCheck(
        correct=correct,
        expected_answer=correct_answer,
        diacritics_ignored=diacritics_ignored,
        feedback=feedback,
    )
