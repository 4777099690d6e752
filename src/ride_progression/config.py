"""Configuration settings for the ride progression engine."""

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings


# __file__ = src/ride_progression/config.py
# .parent.parent.parent = project root
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Storage
    progression_db_path: Path | None = None
    db_timeout_seconds: float = 10.0

    # Notifications
    notification_ttl_days: int = 30
    cleanup_read_after_days: int = 30

    # Streak writes use an optimistic version check
    streak_write_retries: int = 3

    # Background maintenance (quest generation/expiry, notification cleanup)
    maintenance_enabled: bool = True
    maintenance_hour_utc: int = 3

    # Logging
    log_level: str = "INFO"

    def model_post_init(self, __context) -> None:
        """Set default database path after initialization."""
        if self.progression_db_path is None:
            self.progression_db_path = PROJECT_ROOT / "progression.db"

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
