from functools import lru_cache

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = Field(default="INFO", validation_alias="COACHKIT_LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="COACHKIT_LOG_FILE")
    log_json: bool = Field(default=False, validation_alias="COACHKIT_LOG_JSON")

    # JSON object keyed by policy profile id, e.g.
    # {"coachkit-safe-v1": {"week_minute_bands": {"severe_min_ratio": 0.3}}}
    policy_overrides_json: str | None = Field(
        default=None,
        validation_alias="COACHKIT_POLICY_OVERRIDES_JSON",
    )

    # Hard-safety limits for automated proposals
    max_week_volume_increase_pct: float = Field(
        default=0.10,
        gt=0,
        le=1,
        validation_alias="COACHKIT_MAX_WEEK_VOLUME_INCREASE_PCT",
    )
    max_week_volume_decrease_pct: float = Field(
        default=0.20,
        gt=0,
        le=1,
        validation_alias="COACHKIT_MAX_WEEK_VOLUME_DECREASE_PCT",
    )
    max_session_duration_change_pct: float = Field(
        default=0.25,
        gt=0,
        le=1,
        validation_alias="COACHKIT_MAX_SESSION_DURATION_CHANGE_PCT",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid COACHKIT_LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from env and .env."""
    return Settings()
