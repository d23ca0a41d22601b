"""Configuration management using Pydantic Settings.

Supports:
- Environment variables (AGENTFORGE_* prefix)
- .env file loading
- Type validation
- Default values
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentforge.exceptions import ConfigurationError
from agentforge.types import Language, ProjectMode

logger = logging.getLogger(__name__)


# ── Temperature & Token Configs ──────────────────────────────────────


@dataclass(frozen=True)
class TemperatureConfig:
    """Temperature strategy for different LLM call types."""

    clarify: float = 0.7
    foundation: float = 0.2
    expert: float = 0.6
    prototype: float = 0.4
    refine: float = 0.5


@dataclass(frozen=True)
class TokenConfig:
    """Max token limits for different LLM call types."""

    clarify: int = 800
    foundation: int = 1000
    expert: int = 4000
    prototype: int = 8000
    refine: int = 4000


TEMPERATURES = TemperatureConfig()
TOKENS = TokenConfig()


# ── Backend Enum & Config ────────────────────────────────────────────


class Backend(str, Enum):
    """Supported LLM API backends (all spoken to over the OpenAI protocol)."""

    GEMINI = "gemini"
    OPENAI = "openai"
    OLLAMA = "ollama"
    EXTERNAL = "external"


@dataclass(frozen=True)
class BackendConfig:
    """Default settings for each backend."""

    default_model: str
    prototype_model: str
    default_url: str
    needs_api_key: bool


BACKEND_DEFAULTS: dict[Backend, BackendConfig] = {
    Backend.GEMINI: BackendConfig(
        default_model="gemini-2.5-flash",
        prototype_model="gemini-2.5-pro",
        default_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        needs_api_key=True,
    ),
    Backend.OPENAI: BackendConfig(
        default_model="gpt-4o-mini",
        prototype_model="gpt-4o",
        default_url="https://api.openai.com/v1",
        needs_api_key=True,
    ),
    Backend.OLLAMA: BackendConfig(
        default_model="qwen2.5:7b",
        prototype_model="qwen2.5:7b",
        default_url="http://localhost:11434/v1",
        needs_api_key=False,
    ),
    Backend.EXTERNAL: BackendConfig(
        default_model="default",
        prototype_model="default",
        default_url="http://localhost:8080/v1",
        needs_api_key=False,
    ),
}


def get_backend_config(backend: Backend) -> BackendConfig:
    """Get the default configuration for a backend."""
    return BACKEND_DEFAULTS[backend]


# ── Pydantic Settings ───────────────────────────────────────────────


class Settings(BaseSettings):
    """Application settings loaded from environment and .env file.

    Environment variables are prefixed with AGENTFORGE_
    Example: AGENTFORGE_BACKEND=ollama
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # LLM API
    backend: Backend = Field(default=Backend.GEMINI, description="LLM API backend")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "AGENTFORGE_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY"
        ),
        description="API key for the hosted backend",
    )
    base_url: str | None = Field(default=None, description="Override the backend URL")
    model: str | None = Field(default=None, description="Override the expert model")
    prototype_model: str | None = Field(
        default=None, description="Override the prototype synthesis model"
    )
    request_timeout: float = Field(default=120.0, gt=0, description="Per-request timeout (s)")

    # Forge behaviour
    mode: ProjectMode = Field(default=ProjectMode.NORMAL, description="Expert roster size")
    language: Language = Field(default=Language.EN, description="Output language")

    # Retry / pacing
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per LLM call")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Backoff base (s)")
    rate_limit_base_delay: float = Field(
        default=3.0, ge=0, description="Backoff base after a rate-limit error (s)"
    )
    retry_jitter: float = Field(default=1.0, ge=0, description="Max random jitter (s)")
    pacing_interval: float = Field(
        default=0.5, ge=0, description="Minimum spacing between expert calls (s)"
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level",
    )

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "agentforge",
        description="Directory for the project library",
    )

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Ensure URLs have protocol."""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v

    @field_validator("rate_limit_base_delay")
    @classmethod
    def validate_rate_limit_delay(cls, v: float, info) -> float:
        """Rate-limit cool-down must not be shorter than the normal backoff."""
        base = info.data.get("retry_base_delay")
        if base is not None and v < base:
            raise ValueError(
                f"rate_limit_base_delay ({v}) must be >= retry_base_delay ({base})"
            )
        return v

    def resolve_url(self) -> str:
        """URL for the configured backend, honouring the override."""
        return self.base_url or get_backend_config(self.backend).default_url

    def resolve_model(self) -> str:
        """Expert model for the configured backend, honouring the override."""
        return self.model or get_backend_config(self.backend).default_model

    def resolve_prototype_model(self) -> str:
        """Prototype model for the configured backend, honouring the override."""
        return self.prototype_model or get_backend_config(self.backend).prototype_model


# Global settings instance (loaded once at startup)
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        try:
            _settings = Settings()
            logger.debug("Settings loaded: %s", _settings.model_dump(exclude={"api_key"}))
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load settings: {e}",
                details={"error": str(e)},
            ) from e
    return _settings


def reload_settings() -> Settings:
    """Force reload settings (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()
