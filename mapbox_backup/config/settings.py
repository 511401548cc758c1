"""Application settings using Pydantic. No side effects at import time."""

from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DATASET_FEATURE_CONCURRENCY,
    DATASETS_RATE_INTERVAL,
    DATASETS_RATE_RESERVOIR,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_REQUEST_TIMEOUT,
    LISTING_CONCURRENCY,
    MAPBOX_API_URL,
    MAX_THROTTLE_RETRIES,
    STYLE_ARTIFACT_CONCURRENCY,
    STYLES_RATE_INTERVAL,
    STYLES_RATE_RESERVOIR,
    THROTTLE_RETRY_DELAY,
)


class Settings(BaseSettings):
    """Application settings with validation.

    Settings are loaded from environment variables and .env file.
    No side effects at class definition time - .env is loaded only when
    Settings() is instantiated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars
        populate_by_name=True,
    )

    # === Credentials ===
    access_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MAPBOX_ACCESS_TOKEN", "MapboxAccessToken"),
    )

    # === API ===
    api_url: str = Field(
        default=MAPBOX_API_URL,
        validation_alias=AliasChoices("MAPBOX_API_URL", "api_url"),
    )
    request_timeout: Annotated[float, Field(gt=0)] = DEFAULT_REQUEST_TIMEOUT
    page_limit: Annotated[int, Field(gt=0)] = DEFAULT_PAGE_LIMIT

    # === Concurrency ===
    style_concurrency: Annotated[int, Field(ge=1)] = STYLE_ARTIFACT_CONCURRENCY
    listing_concurrency: Annotated[int, Field(ge=1)] = LISTING_CONCURRENCY
    dataset_concurrency: Annotated[int, Field(ge=1)] = DATASET_FEATURE_CONCURRENCY

    # === Rate budgets ===
    styles_rate_reservoir: Annotated[int, Field(gt=0)] = STYLES_RATE_RESERVOIR
    styles_rate_interval: Annotated[float, Field(gt=0)] = STYLES_RATE_INTERVAL
    datasets_rate_reservoir: Annotated[int, Field(gt=0)] = DATASETS_RATE_RESERVOIR
    datasets_rate_interval: Annotated[float, Field(gt=0)] = DATASETS_RATE_INTERVAL

    # === Retry ===
    max_retries: Annotated[int, Field(ge=0)] = MAX_THROTTLE_RETRIES
    retry_delay: Annotated[float, Field(ge=0)] = THROTTLE_RETRY_DELAY

    # === Policy ===
    abort_on_failure: bool = Field(
        default=False, description="Stop after the first category whose listing fails"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This is the recommended way to access settings to avoid
    repeated .env file parsing.
    """
    return Settings()
