"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    elevenlabs_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "elevenlabs_api_key"),
    )
    elevenlabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.elevenlabs.io/v1"),
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "elevenlabs_base_url"),
    )
    elevenlabs_model: str = Field(
        default="eleven_monolingual_v1",
        validation_alias=AliasChoices("ELEVENLABS_MODEL", "elevenlabs_model"),
    )
    default_output_format: str = Field(
        default="mp3_44100_128",
        validation_alias=AliasChoices(
            "ELEVENLABS_OUTPUT_FORMAT", "default_output_format"
        ),
    )
    request_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("ELEVENLABS_TIMEOUT", "timeout"),
        ge=1,
    )
    voice_cache_seconds: int = Field(
        default=3600,
        ge=0,
        validation_alias=AliasChoices("VOICE_CACHE_SECONDS", "voice_cache_seconds"),
    )

    output_dir: Path = Field(
        default_factory=lambda: Path("outputs"),
        validation_alias=AliasChoices("OUTPUT_DIR", "output_dir"),
    )

    # Batch processing
    max_chunk_chars: int = Field(
        default=1000,
        ge=1,
        validation_alias=AliasChoices("MAX_CHUNK_SIZE", "max_chunk_chars"),
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices("RETRY_ATTEMPTS", "retry_attempts"),
    )
    retry_delay_ms: int = Field(
        default=1000,
        ge=0,
        validation_alias=AliasChoices("RETRY_DELAY", "retry_delay_ms"),
    )
    item_delay_ms: int = Field(
        default=100,
        ge=0,
        validation_alias=AliasChoices("ITEM_DELAY", "item_delay_ms"),
    )
    session_cleanup_hours: float = Field(
        default=24,
        ge=0,
        validation_alias=AliasChoices(
            "SESSION_CLEANUP_HOURS", "session_cleanup_hours"
        ),
    )

    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH", "logging_settings_path"
        ),
    )
    log_dir: Path = Field(
        default_factory=lambda: Path("logs/app"),
        validation_alias=AliasChoices("LOG_DIR", "log_dir"),
    )

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000

    @property
    def item_delay_seconds(self) -> float:
        return self.item_delay_ms / 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]
