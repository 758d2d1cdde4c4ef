from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
from typing import Dict, List
import logging

_logger = logging.getLogger(__name__)

# Look for .env in api directory (parent of the package directory)
api_dir = Path(__file__).parent.parent.parent
env_path = api_dir / ".env"

if env_path.exists():
    load_dotenv(env_path, override=True)
    _logger.info(f"Loaded .env file from: {env_path}")
else:
    # Fallback to current directory
    current_env = Path(".env")
    if current_env.exists():
        load_dotenv(current_env, override=True)
        _logger.info(f"Loaded .env file from: {current_env.absolute()}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = ""

    # API
    api_v1_prefix: str = "/api/v1"
    environment: str = "production"  # development, dev or local expose tracebacks on 500s

    # CORS
    cors_origins: List[str] = ["*"]

    # Card difficulty tiers: total < beginner_max -> beginner, total >= advanced_min -> advanced
    beginner_max_difficulty: int = 35
    advanced_min_difficulty: int = 60

    # Type score contribution per card category (0-10)
    word_type_score: int = 2
    phrase_type_score: int = 5
    sentence_type_score: int = 8

    # SM-2 scheduling
    initial_ease_factor: float = 2.5
    min_ease_factor: float = 1.3
    max_ease_factor: float = 3.0
    ease_penalty: float = 0.2
    fast_response_bonus: float = 0.1
    max_interval_days: int = 365
    expected_response_ms: Dict[str, int] = {
        "flashcard": 3000,
        "multiple_choice": 8000,
        "fill_blank": 10000,
        "translation_pl_en": 15000,
        "translation_en_pl": 20000,
        "word_order": 15000,
        "pronunciation": 6000,
    }
    default_expected_response_ms: int = 10000

    # Progression
    base_session_xp: int = 50
    max_time_bonus_xp: int = 10
    max_raw_xp_bonus: int = 50
    default_starting_difficulty: int = 10
    difficulty_step: int = 5
    difficulty_raise_accuracy: float = 0.75
    difficulty_lower_accuracy: float = 0.5

    # Question selection
    selection_band_width: float = 10.0

    # Optimistic concurrency
    max_conflict_retries: int = 3

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    class Config:
        env_file = ".env"
        case_sensitive = False


# Create settings instance
settings = Settings()

# Validate required DATABASE_URL
if not settings.database_url:
    raise ValueError("DATABASE_URL environment variable is required")
