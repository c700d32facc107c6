"""Centralized configuration via Pydantic Settings.

Loads env vars (and an optional .env file) into a typed Settings instance.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Python log level")
    LOG_JSON: bool = Field(
        default=True,
        description="Render logs as JSON (False: colorized console output)",
    )

    # Ingestion
    DEFAULT_CURRENCY: str = Field(
        default="GBP",
        description="Currency code used when a statement does not declare one",
    )
    AMOUNT_LOOKBACK_LINES: int = Field(
        default=4,
        ge=1,
        description="How many lines a multi-line PDF layout may search backward for an amount",
    )

    # Review thresholds
    CONFIDENCE_LOW_THRESHOLD: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Classifications below this are Low confidence",
    )
    CONFIDENCE_HIGH_THRESHOLD: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Classifications at or above this are High confidence",
    )

    # Insights
    UPCOMING_WINDOW_DAYS: int = Field(
        default=7,
        ge=0,
        description="Default horizon for upcoming subscription charges",
    )

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL

    model_config = {"env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Factory for Settings, so tests can override via env."""
    return Settings()
