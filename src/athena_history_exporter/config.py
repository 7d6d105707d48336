"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file: where the history log and the
checkpoint live, which region and work group to export, and how large each
history object should grow before it is flushed.

The `get_settings` function provides a cached, singleton instance of the
configuration, ensuring consistent settings throughout the application.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

from .errors import ConfigurationError
from .history import DEFAULT_BATCH_SIZE
from .source import MAX_LIST_PAGE_SIZE
from .storage import resolve_state_location, split_s3_uri


class Settings(BaseSettings):
    """Defines all application configuration parameters.

    Values come from environment variables or a `.env` file. Both URIs are
    validated here, so a malformed location fails before any AWS call is made.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Destination
    HISTORY_BASE_URI: str = Field(
        description="S3 URI below which history objects are written, e.g. s3://bucket/prefix/"
    )
    STATE_URI: Optional[str] = Field(
        default=None,
        description=(
            "Location of the checkpoint document: s3://bucket/key or a local file path. "
            "Unset or blank disables checkpointing (every run is a full rescan)."
        ),
    )

    # AWS
    AWS_REGION: Optional[str] = Field(
        default=None, description="Region for the Athena and S3 clients (boto3 default chain if unset)"
    )
    WORK_GROUP: Optional[str] = Field(
        default=None, description="Only export query executions of this Athena work group"
    )
    LIST_PAGE_SIZE: Optional[int] = Field(
        default=None,
        description=f"MaxResults for ListQueryExecutions (1..{MAX_LIST_PAGE_SIZE}); Athena default if unset",
    )

    # Batching
    BATCH_SIZE: int = Field(
        default=DEFAULT_BATCH_SIZE,
        description="Number of records accumulated before a history object is flushed",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("STATE_URI", "WORK_GROUP", "AWS_REGION", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        """Trim whitespace and normalize blank -> None for optional strings."""
        if v is None:
            return None
        if isinstance(v, str):
            trimmed = v.strip()
            return trimmed or None
        return v

    @field_validator("HISTORY_BASE_URI")
    @classmethod
    def validate_history_uri(cls, v: str) -> str:
        try:
            split_s3_uri(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("STATE_URI")
    @classmethod
    def validate_state_uri(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                resolve_state_location(v)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return v

    @field_validator("BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("BATCH_SIZE must be >= 1")
        return v

    @field_validator("LIST_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= MAX_LIST_PAGE_SIZE:
            raise ValueError(f"LIST_PAGE_SIZE must be between 1 and {MAX_LIST_PAGE_SIZE}")
        return v


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, with ``overrides`` taking precedence.

    Provides a clearer error if the mandatory history destination is missing.
    """
    try:
        # HISTORY_BASE_URI is intentionally required; BaseSettings injects it
        # from the environment at runtime.
        return Settings(**overrides)  # type: ignore[call-arg]
    except ValidationError as e:
        missing_history = any(
            err.get("loc") == ("HISTORY_BASE_URI",) and err.get("type") == "missing"
            for err in e.errors()
        )
        if missing_history:
            raise ConfigurationError(
                "HISTORY_BASE_URI is required, e.g. HISTORY_BASE_URI=s3://my-bucket/athena-history/"
            ) from e
        raise


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, singleton instance of the application settings."""
    return load_settings()
