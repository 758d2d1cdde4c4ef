"""
Progression endpoints: XP, levels, streaks and the difficulty band.
"""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from datetime import date
from typing import List, Optional
import logging

from lokalny.core.database import get_session
from lokalny.schemas.progression import (
    SessionSummary,
    ProgressionUpdate,
    ProgressionResponse,
    ProgressionSessionResponse,
    ProgressionStatsResponse,
    LevelProgressionResponse,
    LeaderboardResponse,
    ProgressionProjection,
    ResetProgressionResponse,
)
from lokalny.services import progression_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progression", tags=["progression"])


@router.get("/levels", response_model=LevelProgressionResponse)
async def get_level_progression():
    """Table of all levels with titles, XP thresholds and difficulty ranges."""
    return progression_service.get_level_progression()


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(10, description="Number of entries (1-100)"),
    order_by: str = Query("level", description="'level' or 'xp'"),
    session: Session = Depends(get_session)
):
    """Top users by level or XP."""
    return progression_service.get_leaderboard(session, limit=limit, order_by=order_by)


@router.get("/users/{user_id}", response_model=ProgressionResponse)
async def get_user_progression(
    user_id: int,
    session: Session = Depends(get_session)
):
    """Current progression of a user."""
    return progression_service.get_user_progression(session, user_id)


@router.post("/users/{user_id}/sessions", response_model=ProgressionUpdate)
async def apply_session(
    user_id: int,
    summary: SessionSummary,
    session: Session = Depends(get_session)
):
    """
    Apply a completed session to the user's progression.

    A session key can be applied only once; replays return 409.
    """
    return progression_service.apply_session(session, user_id, summary)


@router.post("/users/{user_id}/sessions/{session_key}/complete", response_model=ProgressionUpdate)
async def complete_logged_session(
    user_id: int,
    session_key: str,
    session: Session = Depends(get_session)
):
    """Build the session totals from the recorded answers of a session and apply them."""
    summary = progression_service.summarize_session(session, user_id, session_key)
    return progression_service.apply_session(session, user_id, summary)


@router.get("/users/{user_id}/history", response_model=List[ProgressionSessionResponse])
async def get_progression_history(
    user_id: int,
    limit: int = Query(20, description="Number of sessions (1-100)"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session)
):
    """Applied sessions, newest first."""
    sessions = progression_service.get_progression_history(
        session, user_id, limit=limit, start_date=start_date, end_date=end_date
    )
    return [ProgressionSessionResponse.model_validate(s) for s in sessions]


@router.get("/users/{user_id}/stats", response_model=ProgressionStatsResponse)
async def get_progression_stats(
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session)
):
    """Session aggregates and the recent difficulty trend."""
    return progression_service.get_progression_stats(
        session, user_id, start_date=start_date, end_date=end_date
    )


@router.get("/users/{user_id}/projection", response_model=ProgressionProjection)
async def get_progression_projection(
    user_id: int,
    sessions_per_week: float = 3,
    avg_accuracy: float = 0.7,
    session: Session = Depends(get_session)
):
    """Projected XP and level 30 days ahead."""
    return progression_service.get_progression_projection(
        session, user_id, sessions_per_week=sessions_per_week, avg_accuracy=avg_accuracy
    )


@router.post("/users/{user_id}/reset", response_model=ResetProgressionResponse)
async def reset_progression(
    user_id: int,
    session: Session = Depends(get_session)
):
    """Restart a user's streak and difficulty band (admin). XP, level and totals are kept."""
    return progression_service.reset_progression(session, user_id)
