"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional, List, Dict, Tuple


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./bumpdispatch.db"

    # Redis (redis_url should contain full connection string including port)
    redis_url: str = "redis://localhost:6379/0"

    # Discord
    discord_bot_token: Optional[str] = None
    discord_api_base: str = "https://discord.com/api/v10"

    # Outbound dispatch
    dispatch_timeout_seconds: float = 10.0
    dispatch_max_attempts: int = 3
    dispatch_concurrency: int = 5
    # Longest rate-limit pause honoured; a longer Discord retry_after fails the dispatch
    dispatch_max_retry_wait_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"

    # Manual bump cooldowns (minutes)
    free_bump_cooldown_minutes: int = 360
    premium_bump_cooldown_minutes: int = 120

    # Auto-bump intervals per tier (hours)
    auto_bump_default_hours: Dict[str, int] = {"small": 12, "medium": 6, "premium": 4}
    auto_bump_min_hours: Dict[str, int] = {"small": 12, "medium": 6, "premium": 2}

    # Advance last_auto_bump_at even when every listing of a subject failed
    auto_bump_advance_on_total_failure: bool = False

    # Driver cadence
    new_listing_poll_seconds: int = 30
    bump_poll_seconds: int = 30
    auto_bump_check_minutes: int = 15
    status_board_minutes: int = 60

    # Records younger than this are left for the next pass so in-flight writes are never overtaken
    notification_settle_seconds: int = 5

    # Pass locking
    use_redis_locks: bool = True
    pass_lock_ttl_seconds: int = 600  # Renewed every third of the TTL while a pass runs

    # Status board
    health_check_targets: str = ""  # Comma-separated Name=url pairs, "?lenient" suffix allows 4xx
    health_check_timeout_seconds: float = 10.0
    status_uptime_window_hours: int = 24
    status_timezone: str = "UTC"
    brand_name: str = "Discord Server Listings"

    # API Configuration
    backend_port: int = 8000
    cors_origins: str = "http://localhost:3000"  # Comma-separated list of allowed origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator(
        'dispatch_max_attempts', 'dispatch_concurrency', 'new_listing_poll_seconds',
        'bump_poll_seconds', 'auto_bump_check_minutes', 'status_board_minutes',
        'pass_lock_ttl_seconds', 'status_uptime_window_hours'
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Cadences, limits and windows must be at least 1."""
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def health_check_targets_list(self) -> List[Tuple[str, str, bool]]:
        """
        Parse health check targets.

        "Website=https://example.com,Functions=https://api.example.com/fn?lenient"
        becomes [("Website", "https://example.com", False),
                 ("Functions", "https://api.example.com/fn", True)].
        """
        targets = []
        for entry in self.health_check_targets.split(","):
            entry = entry.strip()
            if not entry or "=" not in entry:
                continue
            name, url = entry.split("=", 1)
            lenient = url.endswith("?lenient")
            if lenient:
                url = url[:-len("?lenient")]
            targets.append((name.strip(), url.strip(), lenient))
        return targets


# Global settings instance
settings = Settings()
