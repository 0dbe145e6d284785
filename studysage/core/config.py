import secrets
import warnings

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    anthropic_api_key: str = ""

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/studysage"

    # Auth - SECRET_KEY must be set via environment variable in production
    secret_key: str = ""
    access_token_expire_minutes: int = 60 * 24 * 7  # 1 week

    # App settings
    app_name: str = "StudySage"
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # AI generation
    generation_model: str = "claude-3-5-haiku-20241022"
    generation_max_tokens: int = 4096
    generation_max_input_chars: int = 8000  # document text sent per request
    flashcards_per_generation: int = 10
    questions_per_generation: int = 10

    # Free tier limits (per calendar day in study_timezone)
    free_daily_flashcards: int = 10
    free_daily_quizzes: int = 5

    # All day-boundary math (streaks, quota resets) happens in this zone
    study_timezone: str = "UTC"

    # Optimistic concurrency retries for user progress updates
    max_update_retries: int = 3

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Ensure secret_key is properly configured."""
        if not self.secret_key:
            if self.debug:
                # Generate a random key for development
                self.secret_key = secrets.token_urlsafe(32)
                warnings.warn(
                    "SECRET_KEY not set - using random key (tokens won't verify across restarts)",
                    stacklevel=2,
                )
            else:
                raise ValueError(
                    "SECRET_KEY environment variable must be set in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
                )
        return self


settings = Settings()
