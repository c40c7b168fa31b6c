from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings and configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    OPENAI_API_KEY: Optional[str] = Field(
        default=None, description="OpenAI API key", min_length=20
    )
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None, description="Anthropic API key", min_length=20
    )
    DEFAULT_MODEL: str = Field(
        default="openai", description="Default model provider to use"
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI chat model")
    ANTHROPIC_MODEL: str = Field(
        default="claude-3-5-haiku-latest", description="Anthropic chat model"
    )
    MODEL_TIMEOUT: int = Field(
        default=60, gt=0, description="Timeout in seconds for a single model call"
    )
    MODEL_TEMPERATURE: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Sampling temperature"
    )
    MAX_UPLOAD_BYTES: int = Field(
        default=20 * 1024 * 1024, gt=0, description="Largest accepted upload"
    )
    HOST: str = Field(default="127.0.0.1", description="Address the API binds to")
    PORT: int = Field(default=8000, gt=0, description="Port the API listens on")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("DEFAULT_MODEL")
    @classmethod
    def validate_default_model(cls, v: str) -> str:
        """Validate the default model setting."""
        if v.lower() not in ["openai", "anthropic"]:
            raise ValueError("DEFAULT_MODEL must be either 'openai' or 'anthropic'")
        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the logging level setting."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()
