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

    # OpenAI-compatible chat completions gateway
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )

    # Native Gemini API
    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GEMINI_API_KEY", "GOOGLE_API_KEY", "gemini_api_key"
        ),
    )
    gemini_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://generativelanguage.googleapis.com/v1beta"
        ),
        validation_alias=AliasChoices("GEMINI_BASE_URL", "gemini_base_url"),
    )

    default_model: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("PLAYGROUND_DEFAULT_MODEL", "default_model"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("PLAYGROUND_TIMEOUT", "request_timeout"),
        ge=1,
    )

    reasoning_open_tag: str = Field(
        default="<think>",
        min_length=1,
        validation_alias=AliasChoices("REASONING_OPEN_TAG", "reasoning_open_tag"),
    )
    reasoning_close_tag: str = Field(
        default="</think>",
        min_length=1,
        validation_alias=AliasChoices("REASONING_CLOSE_TAG", "reasoning_close_tag"),
    )

    drop_non_image_attachments: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "DROP_NON_IMAGE_ATTACHMENTS",
            "drop_non_image_attachments",
        ),
        description=(
            "When disabled, non-image attachments are forwarded as file parts "
            "instead of being left out of the request."
        ),
    )
    image_failure_message: str = Field(
        default="Image generation failed: {detail}",
        validation_alias=AliasChoices(
            "IMAGE_FAILURE_MESSAGE", "image_failure_message"
        ),
    )

    # Sampling defaults applied to new sessions
    default_temperature: float = Field(
        default=0.7,
        ge=0,
        le=2,
        validation_alias=AliasChoices("DEFAULT_TEMPERATURE", "default_temperature"),
    )
    default_max_tokens: int = Field(
        default=2048,
        ge=1,
        validation_alias=AliasChoices("DEFAULT_MAX_TOKENS", "default_max_tokens"),
    )
    default_top_p: float = Field(
        default=1.0,
        ge=0,
        le=1,
        validation_alias=AliasChoices("DEFAULT_TOP_P", "default_top_p"),
    )
    default_aspect_ratio: str = Field(
        default="1:1",
        validation_alias=AliasChoices("DEFAULT_ASPECT_RATIO", "default_aspect_ratio"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]
