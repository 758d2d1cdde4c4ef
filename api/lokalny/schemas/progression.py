"""
Progression schemas.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime


class SessionSummary(BaseModel):
    """Totals of one completed learning session, submitted once at session end."""
    questions_answered: int
    correct_answers: int
    xp_earned_raw: Optional[int] = None  # Client-side bonus XP, capped server-side
    session_date: Optional[date] = None
    session_key: Optional[str] = Field(None, max_length=64)
    duration_seconds: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "questions_answered": 10,
                "correct_answers": 8,
                "session_key": "b1f0c1e2-session",
                "duration_seconds": 420
            }
        }


class ProgressionResponse(BaseModel):
    """A user's progression record with derived display values."""
    user_id: int
    level: int = 1
    xp: int = 0
    streak: int = 0
    current_difficulty: int = 10
    total_sessions: int = 0
    total_correct_answers: int = 0
    total_questions_answered: int = 0
    last_session_date: Optional[date] = None
    level_up_date: Optional[datetime] = None
    accuracy: float = 0
    xp_progress: int = 0
    xp_for_next_level: int = 100
    title: str = "Beginner"


class CelebrationData(BaseModel):
    """Something worth celebrating after a session."""
    type: str  # level_up, streak_milestone or xp_milestone
    message: str
    milestone: int


class ProgressionUpdate(BaseModel):
    """Result of applying a session to a user's progression."""
    progression: ProgressionResponse
    session_id: int
    xp_earned: int
    leveled_up: bool
    old_level: int
    new_level: int
    old_difficulty: int
    new_difficulty: int
    difficulty_adjusted: bool
    streak: int
    celebration: Optional[CelebrationData] = None


class ProgressionSessionResponse(BaseModel):
    """Audit row of one applied session."""
    id: int
    user_id: int
    session_key: Optional[str] = None
    session_date: date
    starting_difficulty: int
    ending_difficulty: int
    xp_earned: int
    questions_answered: int
    correct_answers: int
    session_accuracy: float
    difficulty_adjustments: int
    created_at: datetime

    class Config:
        from_attributes = True


class DifficultyRange(BaseModel):
    """Suggested difficulty range for a level (display only)."""
    min: int
    max: int


class LevelInfo(BaseModel):
    """Title and thresholds of one level."""
    level: int
    xp_required: int  # Cumulative XP at which the level starts
    difficulty_range: DifficultyRange
    title: str
    description: str


class LevelProgressionResponse(BaseModel):
    """Table of every level."""
    levels: List[LevelInfo]


class SessionStats(BaseModel):
    """Aggregates over a user's progression sessions."""
    total_sessions: int = 0
    total_questions: int = 0
    total_correct: int = 0
    total_xp: int = 0
    avg_accuracy: float = 0
    best_accuracy: float = 0
    avg_xp_per_session: float = 0


class DifficultyTrendPoint(BaseModel):
    """Difficulty band after one session."""
    session_date: date
    ending_difficulty: int
    session_accuracy: float


class ProgressionStatsResponse(BaseModel):
    """Progression record plus session aggregates and the recent difficulty trend."""
    progression: ProgressionResponse
    session_stats: SessionStats
    difficulty_trend: List[DifficultyTrendPoint]


class LeaderboardEntry(BaseModel):
    """One leaderboard row."""
    rank: int
    user_id: int
    name: str
    level: int
    xp: int
    streak: int
    accuracy: float


class LeaderboardResponse(BaseModel):
    """Top users by level or XP."""
    order_by: str
    entries: List[LeaderboardEntry]


class ProgressionProjection(BaseModel):
    """Where a user's progression is heading at a given pace."""
    current_level: int
    current_xp: int
    avg_xp_per_session: int
    weeks_to_next_level: Optional[int] = None  # None at max level or when no XP is earned
    projected_level_in_30_days: int
    projected_xp_in_30_days: int


class ResetProgressionResponse(BaseModel):
    """Reset confirmation."""
    success: bool
    message: str
