"""Configuration management for Claw Activity Stream."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from claw_activity.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_POST_DELAY_SECONDS,
    DEFAULT_RATE_LIMIT_PER_MINUTE,
)

_OPENCLAW_HOME = Path.home() / ".openclaw"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Outbound activity webhook (parser side)
    webhook_url: str = Field(
        default="http://localhost:3000/webhook/activity",
        description="Endpoint the parser posts activity events to",
    )
    webhook_secret: SecretStr | None = Field(
        default=None, description="Shared secret sent and checked as X-Webhook-Secret"
    )

    # Discord (relay side)
    discord_token: SecretStr | None = Field(default=None, description="Discord bot token")
    activity_channel_id: int | None = Field(
        default=None, description="Discord channel that receives the activity stream"
    )
    admin_user_id: int | None = Field(
        default=None, description="Discord user allowed to toggle streaming"
    )
    guild_id: int | None = Field(
        default=None, description="Guild to sync slash commands into (global when unset)"
    )
    discord_webhook_url: str | None = Field(
        default=None, description="Discord webhook URL, used when no bot token is configured"
    )
    message_style: Literal["compact", "embed"] = Field(
        default="compact", description="How activity is rendered in Discord"
    )

    # Sources
    source_mode: Literal["log", "session"] = Field(
        default="log", description="Tail the gateway log or the session directory"
    )
    log_path: str = Field(
        default=str(_OPENCLAW_HOME / "logs" / "gateway.err.log"),
        description="Gateway log file tailed in log mode",
    )
    sessions_dir: str = Field(
        default=str(_OPENCLAW_HOME / "agents" / "main" / "sessions"),
        description="Directory of .jsonl session files tailed in session mode",
    )
    force_polling: bool = Field(
        default=False, description="Poll for file changes instead of OS notifications"
    )

    # Delivery
    rate_limit_per_minute: int = Field(
        default=DEFAULT_RATE_LIMIT_PER_MINUTE,
        ge=1,
        description="Maximum deliveries per 60 second window",
    )
    post_delay_ms: int = Field(
        default=int(DEFAULT_POST_DELAY_SECONDS * 1000),
        ge=0,
        description="Pause between consecutive deliveries",
    )
    rate_limit_backoff_ms: int = Field(
        default=int(DEFAULT_BACKOFF_SECONDS * 1000),
        ge=0,
        description="Pause before asking the rate limiter again after a denial",
    )

    # Relay server
    host: str = Field(default="0.0.0.0", description="Relay server bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Relay server port")

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Also write JSON logs to files")
    log_directory: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate size")
    log_file_backup_count: int = Field(default=5, description="Rotated files kept")
    log_error_file_enabled: bool = Field(
        default=True, description="Write WARNING and above to a separate file"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def log_file_path(self) -> str:
        return str(Path(self.log_directory) / "claw_activity.log")

    @property
    def error_log_file_path(self) -> str:
        return str(Path(self.log_directory) / "claw_activity_error.log")

    @property
    def post_delay_seconds(self) -> float:
        return self.post_delay_ms / 1000

    @property
    def backoff_seconds(self) -> float:
        return self.rate_limit_backoff_ms / 1000

    @property
    def secret(self) -> str | None:
        """Plain shared secret, or None when unset or empty."""
        if self.webhook_secret is None:
            return None
        return self.webhook_secret.get_secret_value() or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
