"""
Card endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
import logging

from lokalny.core.database import get_session
from lokalny.schemas.card import (
    CardResponse,
    CreateCardRequest,
    UpdateCardRequest,
    CardDifficultyResponse,
)
from lokalny.services import card_service, difficulty_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    request: CreateCardRequest,
    session: Session = Depends(get_session)
):
    """Create a card; its difficulty is classified immediately."""
    card = card_service.create_card(session, request.deck_id, request.front, request.back, request.tags)
    return CardResponse.model_validate(card)


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: int,
    session: Session = Depends(get_session)
):
    """Get a card with its stored difficulty."""
    return CardResponse.model_validate(card_service.get_card(session, card_id))


@router.patch("/{card_id}", response_model=CardResponse)
async def update_card(
    card_id: int,
    request: UpdateCardRequest,
    session: Session = Depends(get_session)
):
    """Edit a card; the difficulty is re-classified."""
    card = card_service.update_card(session, card_id, request.front, request.back, request.tags)
    return CardResponse.model_validate(card)


@router.get("/{card_id}/difficulty", response_model=CardDifficultyResponse)
async def get_card_difficulty(
    card_id: int,
    session: Session = Depends(get_session)
):
    """Stored difficulty breakdown of a card, computed on first access."""
    return CardDifficultyResponse.model_validate(difficulty_service.get_card_difficulty(session, card_id))


@router.delete("/{card_id}/difficulty", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card_difficulty(
    card_id: int,
    session: Session = Depends(get_session)
):
    """Delete the stored difficulty of a card."""
    card_service.get_card(session, card_id)
    difficulty_service.delete_card_difficulty(session, card_id)
