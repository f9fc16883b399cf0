"""Configuration management for the circulation engine.

Business parameters (loan period, fee per late day) have no built-in
defaults: a deployment must supply them through the environment, a ``.env``
file, or per call. Everything else has a usable default.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CirculationSettings(BaseSettings):
    """Settings for the lifecycle engine, its storage and the tool server."""

    model_config = SettingsConfigDict(
        # LIBRARY_CIRCULATION_LOAN_PERIOD_DAYS=14 and so on
        env_prefix="LIBRARY_CIRCULATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Business Parameters ===

    loan_period_days: int | None = Field(
        default=None,
        description="Days between borrow date and due date when the caller gives none",
        gt=0,
    )

    fee_per_late_day: int | None = Field(
        default=None,
        description="Late fee charged per day past the due date when the caller gives none",
        ge=0,
    )

    # === Concurrency ===

    max_conflict_retries: int = Field(
        default=3,
        description="Attempts made before a storage conflict is reported to the caller",
        ge=1,
        le=10,
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/circulation.db"),
        description="SQLite database file path",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="library-circulation",
        description="Tool server name announced to clients",
        pattern=r"^[a-z0-9-]+$",
        min_length=3,
        max_length=50,
    )

    server_version: str = Field(
        default="0.1.0",
        description="Tool server version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path; the directory is created on first connect."""
        return v.absolute()

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


class _SettingsStore:
    """Internal storage for the settings singleton."""

    _instance: CirculationSettings | None = None


def get_settings() -> CirculationSettings:
    """Get or create the process-wide settings instance."""
    if _SettingsStore._instance is None:  # type: ignore[reportPrivateUsage]
        _SettingsStore._instance = CirculationSettings()  # type: ignore[reportPrivateUsage]
    return _SettingsStore._instance  # type: ignore[reportPrivateUsage]


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    _SettingsStore._instance = None  # type: ignore[reportPrivateUsage]
