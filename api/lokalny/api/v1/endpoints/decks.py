"""
Deck endpoints, including batch difficulty classification.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from typing import List
import logging

from lokalny.core.database import get_session
from lokalny.schemas.card import (
    CreateDeckRequest,
    DeckResponse,
    CardResponse,
    DeckDifficultyCalculationResponse,
    DeckDifficultyStatsResponse,
)
from lokalny.services import card_service, difficulty_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/decks", tags=["decks"])


@router.post("", response_model=DeckResponse, status_code=status.HTTP_201_CREATED)
async def create_deck(
    request: CreateDeckRequest,
    session: Session = Depends(get_session)
):
    """Create a deck."""
    deck = card_service.create_deck(session, request.name, request.description)
    return DeckResponse.model_validate(deck)


@router.post("/{deck_id}/calculate-difficulties", response_model=DeckDifficultyCalculationResponse)
async def calculate_deck_difficulties(
    deck_id: int,
    force: bool = False,
    session: Session = Depends(get_session)
):
    """
    Classify every card of a deck.

    Args:
        deck_id: Deck ID
        force: Re-classify cards that already have a stored difficulty
    """
    return difficulty_service.calculate_deck_difficulties(session, deck_id, force=force)


@router.get("/{deck_id}/difficulty-stats", response_model=DeckDifficultyStatsResponse)
async def get_deck_difficulty_stats(
    deck_id: int,
    session: Session = Depends(get_session)
):
    """Difficulty count, average, range and tier distribution of a deck."""
    return difficulty_service.get_deck_difficulty_stats(session, deck_id)


@router.get("/{deck_id}/cards/by-difficulty", response_model=List[CardResponse])
async def get_cards_by_difficulty(
    deck_id: int,
    min_difficulty: int = Query(0, description="Lowest total difficulty (0-100)"),
    max_difficulty: int = Query(100, description="Highest total difficulty (0-100)"),
    limit: int = Query(50, description="Maximum number of cards (1-100)"),
    session: Session = Depends(get_session)
):
    """Classified cards of a deck within a difficulty range, easiest first."""
    cards = difficulty_service.get_cards_by_difficulty(
        session, deck_id, min_difficulty, max_difficulty, limit
    )
    return [CardResponse.model_validate(card) for card in cards]
