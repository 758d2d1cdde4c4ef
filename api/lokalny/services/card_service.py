"""
Card service for creating and editing decks and cards.

Every card write goes through here so its difficulty is (re)classified in the
same transaction.
"""
import logging
from typing import Optional

from sqlmodel import Session, select

from lokalny.core.exceptions import NotFoundError, ValidationError, ConflictError
from lokalny.models.card import Card
from lokalny.models.deck import Deck
from lokalny.services import difficulty_service
from lokalny.utils.text_utils import normalize_card_text
from lokalny.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def create_deck(session: Session, name: str, description: Optional[str] = None) -> Deck:
    """
    Create a deck.

    Raises:
        ValidationError: If the name is empty
        ConflictError: If a deck with that name already exists
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Deck name must not be empty")

    existing = session.exec(select(Deck).where(Deck.name == name)).first()
    if existing:
        raise ConflictError(f"Deck '{name}' already exists")

    deck = Deck(name=name, description=description)
    session.add(deck)
    session.commit()
    session.refresh(deck)
    logger.info(f"Created deck {deck.id} ({deck.name})")
    return deck


def get_card(session: Session, card_id: int) -> Card:
    """Get a card by id or raise NotFoundError."""
    card = session.get(Card, card_id)
    if not card:
        raise NotFoundError(f"Card with id {card_id} not found")
    return card


def create_card(session: Session, deck_id: int, front: str, back: str, tags: str = "") -> Card:
    """
    Create a card and classify its difficulty in one transaction.

    This is the hook the deck import pipeline calls for each imported note.

    Args:
        session: Database session
        deck_id: Owning deck
        front: Front text (Polish)
        back: Back text
        tags: Comma-separated tags

    Returns:
        The created card with its difficulty

    Raises:
        NotFoundError: If the deck does not exist
        ValidationError: If front or back is empty
    """
    if not session.get(Deck, deck_id):
        raise NotFoundError(f"Deck with id {deck_id} not found")
    if not normalize_card_text(front) or not normalize_card_text(back):
        raise ValidationError("Card front and back must not be empty")

    card = Card(deck_id=deck_id, front=front.strip(), back=back.strip(), tags=tags or "")
    session.add(card)
    session.flush()

    difficulty_service.classify_card(session, card, commit=False)
    session.commit()
    session.refresh(card)
    logger.info(f"Created card {card.id} in deck {deck_id} ({card.difficulty_level})")
    return card


def update_card(
    session: Session,
    card_id: int,
    front: Optional[str] = None,
    back: Optional[str] = None,
    tags: Optional[str] = None
) -> Card:
    """
    Edit a card and re-classify its difficulty.

    Only provided fields are changed. The stored difficulty row is replaced,
    never duplicated.

    Raises:
        NotFoundError: If the card does not exist
        ValidationError: If the edit leaves front or back empty
    """
    card = get_card(session, card_id)

    if front is not None and not normalize_card_text(front):
        raise ValidationError("Card front must not be empty")
    if back is not None and not normalize_card_text(back):
        raise ValidationError("Card back must not be empty")

    if front is not None:
        card.front = front.strip()
    if back is not None:
        card.back = back.strip()
    if tags is not None:
        card.tags = tags
    card.updated_at = utcnow()
    session.add(card)

    difficulty_service.classify_card(session, card, commit=False)
    session.commit()
    session.refresh(card)
    logger.info(f"Updated card {card.id} and re-classified it as {card.difficulty_level}")
    return card
