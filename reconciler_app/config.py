from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reconciler_app.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below

    SHORT_LINK_BASE_URL and SHORT_LINK_PREFIX have no defaults: the
    reconciler refuses to start without them.
    """

    # Logging
    log_level: str = "INFO"

    # Short links
    short_link_base_url: str
    short_link_prefix: str

    # Primary store (relational)
    database_url: str = "sqlite:///./resources.db"

    # Derived store (documents)
    derived_store_backend: str = "redis"  # Options: "redis", "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "fixr"
    run_lock_timeout: int = 3600  # Seconds before an abandoned run lock expires

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("short_link_base_url")
    @classmethod
    def check_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an absolute http(s) URL")
        if value.endswith("/"):
            raise ValueError("must not end with a slash")
        return value

    @field_validator("short_link_prefix")
    @classmethod
    def check_prefix(cls, value: str) -> str:
        if not value or not value.isalnum():
            raise ValueError("must be a non-empty alphanumeric string")
        return value

    @field_validator("derived_store_backend")
    @classmethod
    def check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("redis", "memory"):
            raise ValueError("must be 'redis' or 'memory'")
        return value

    @field_validator("run_lock_timeout")
    @classmethod
    def check_lock_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive number of seconds")
        return value


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment.

    Raises:
        ConfigurationError: if a required variable is missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']).upper()}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration - {problems}") from exc


class ReconcilerConfig(BaseModel):
    """
    Immutable per-run configuration.

    Built once at startup from settings and command-line flags, then passed
    explicitly to every component of the engine.
    """

    base_url: str
    prefix: str
    lookback_days: int = Field(default=1)
    tasks: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @field_validator("lookback_days")
    @classmethod
    def check_lookback_days(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("lookback days must be an integer > 0")
        return value

    @classmethod
    def build(
        cls,
        settings: Settings,
        lookback_days: int = 1,
        tasks: Tuple[str, ...] = ()
    ) -> "ReconcilerConfig":
        """
        Freeze settings and flags into a run configuration.

        Raises:
            ConfigurationError: if lookback_days is not positive
        """
        try:
            return cls(
                base_url=settings.short_link_base_url,
                prefix=settings.short_link_prefix,
                lookback_days=lookback_days,
                tasks=tuple(tasks)
            )
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid run configuration - {exc.errors()[0]['msg']}"
            ) from exc
