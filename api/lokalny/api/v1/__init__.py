"""
API v1 router aggregation.
"""
from fastapi import APIRouter
from lokalny.api.v1.endpoints import (
    users, decks, cards, reviews, progression, lessons
)

api_router = APIRouter()

# Include all endpoint routers
# Note: Each router already defines its own prefix, so we don't add another one here
api_router.include_router(users.router)
api_router.include_router(decks.router)
api_router.include_router(cards.router)
api_router.include_router(reviews.router)
api_router.include_router(progression.router)
api_router.include_router(lessons.router)
