"""Application configuration using Pydantic Settings"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    User-facing settings (home presence, channels, recordings) live in the
    settings store, see motion_relay.services.settings_service.
    """

    # Database
    DATABASE_URL: str = "sqlite:///./data/motion_relay.db"

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # Defaults to backend/data/logs

    # Web Push
    VAPID_CLAIMS_EMAIL: str = "mailto:example@yourdomain.org"

    # Webhook channel
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0

    # Telegram channel
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = 30.0

    # Number of notifications replayed to newly connected realtime clients
    NOTIFICATION_LOG_SIZE: int = 100

    @field_validator('LOG_LEVEL', mode='after')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator('NOTIFICATION_LOG_SIZE', mode='after')
    @classmethod
    def validate_notification_log_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("NOTIFICATION_LOG_SIZE must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


# Global settings instance
settings = Settings()
