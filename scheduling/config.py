from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine tuning knobs loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="CAMP_", case_sensitive=False, populate_by_name=True)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Generator
    progress_interval: int = Field(default=10, ge=1)
    top_k_candidates: int = Field(default=3, ge=1)
    variety_bonus_base: float = 50.0
    variety_bonus_step: float = 5.0
    duration_penalty_per_minute: float = 0.5
    jitter_scale: float = 10.0

    # Feasibility
    max_hard_constraints_warning: int = 20
    large_schedule_threshold: int = 1000
    min_recommended_activities: int = 3

    # Staff
    max_staff_hours_per_day: float = 8.0

    # Demo data generation
    gemini_model: str = "gemini-2.5-flash"
    google_api_key: Optional[str] = Field(default=None, validation_alias="GOOGLE_API_KEY")


@lru_cache
def get_settings() -> Settings:
    return Settings()
