"""Configuration management for the Goal Achiever API and client."""

from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # ===========================
    # Server Configuration
    # ===========================
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5000, alias="PORT")
    debug: bool = Field(default=True, alias="DEBUG")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    cors_origins: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS"
    )

    # ===========================
    # Auth Configuration
    # ===========================
    # Tokens are issued by the external auth service; we only verify them.
    jwt_secret_key: str = Field(default="change-me", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # ===========================
    # AI Tutor Configuration
    # ===========================
    aws_region: str = Field(default="us-west-2", alias="AWS_REGION")
    aws_profile: Optional[str] = Field(default=None, alias="AWS_PROFILE")
    bedrock_model_id: str = Field(
        default="anthropic.claude-3-5-sonnet-20241022-v2:0",
        alias="BEDROCK_MODEL_ID"
    )
    tutor_temperature: float = Field(default=0.7, alias="TUTOR_TEMPERATURE")
    practice_temperature: float = Field(default=0.3, alias="PRACTICE_TEMPERATURE")
    max_tokens: int = Field(default=800, alias="MAX_TOKENS")
    quick_response_max_tokens: int = Field(default=300, alias="QUICK_RESPONSE_MAX_TOKENS")
    use_mock_ai: bool = Field(default=False, alias="USE_MOCK_AI")
    max_message_length: int = Field(default=2000, alias="MAX_MESSAGE_LENGTH")
    history_window: int = Field(default=10, alias="HISTORY_WINDOW")

    # ===========================
    # Rate Limiting
    # ===========================
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    ai_tutor_rate_limit: int = Field(default=100, alias="AI_TUTOR_RATE_LIMIT")
    ai_tutor_rate_window_seconds: int = Field(default=15 * 60, alias="AI_TUTOR_RATE_WINDOW_SECONDS")
    practice_rate_limit: int = Field(default=2, alias="PRACTICE_RATE_LIMIT")
    practice_rate_window_seconds: int = Field(default=60 * 60, alias="PRACTICE_RATE_WINDOW_SECONDS")
    quick_response_rate_limit: int = Field(default=5, alias="QUICK_RESPONSE_RATE_LIMIT")
    quick_response_rate_window_seconds: int = Field(default=5 * 60, alias="QUICK_RESPONSE_RATE_WINDOW_SECONDS")

    # ===========================
    # Check-in Configuration
    # ===========================
    max_recurring_checkins: int = Field(default=50, alias="MAX_RECURRING_CHECKINS")
    reminder_lookahead_minutes: int = Field(default=60, alias="REMINDER_LOOKAHEAD_MINUTES")
    default_page_size: int = Field(default=20, alias="DEFAULT_PAGE_SIZE")

    # ===========================
    # Logging Configuration
    # ===========================
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        alias="LOG_FORMAT"
    )

    # ===========================
    # Client Configuration
    # ===========================
    api_base_url: str = Field(default="http://localhost:5000/api", alias="API_BASE_URL")
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")
    retry_attempts: int = Field(default=3, alias="RETRY_ATTEMPTS")
    retry_base_delay_seconds: float = Field(default=1.0, alias="RETRY_BASE_DELAY_SECONDS")
    retry_max_delay_seconds: float = Field(default=5.0, alias="RETRY_MAX_DELAY_SECONDS")
    tutor_min_request_interval_seconds: float = Field(
        default=2.0,
        alias="TUTOR_MIN_REQUEST_INTERVAL_SECONDS"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True
        extra = "ignore"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global settings
    settings = Settings()
    return settings
