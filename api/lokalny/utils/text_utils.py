"""
Text utility functions.
"""
import re
from typing import List

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_HTML_ENTITY_RE = re.compile(r"&[^;\s]+;")
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_CHARS_RE = re.compile(r"[^\w]", re.UNICODE)


def strip_html(text: str) -> str:
    """
    Remove HTML tags and entities from imported card text.

    Anki fields frequently carry markup such as ``<b>``, ``<br>`` or ``&nbsp;``;
    entities are replaced with a space so adjacent words stay separated.

    Args:
        text: Raw card text

    Returns:
        Plain text
    """
    if not text:
        return ""
    without_tags = _HTML_TAG_RE.sub("", text)
    return _HTML_ENTITY_RE.sub(" ", without_tags)


def normalize_card_text(text: str) -> str:
    """
    Normalize card text by stripping HTML, collapsing whitespace and trimming.

    Args:
        text: The text to normalize

    Returns:
        Normalized text (empty string if nothing is left)
    """
    return _WHITESPACE_RE.sub(" ", strip_html(text)).strip()


def tokenize(text: str) -> List[str]:
    """Split normalized text into whitespace-separated tokens."""
    normalized = normalize_card_text(text)
    if not normalized:
        return []
    return normalized.split(" ")


def bare_word(token: str) -> str:
    """Lowercase a token and drop punctuation, keeping Unicode letters."""
    return _WORD_CHARS_RE.sub("", token.lower())
