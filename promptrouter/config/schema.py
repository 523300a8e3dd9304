"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """Configuration for LLM providers."""
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)


class RoutingConfig(BaseModel):
    """Routing, retry and fallback policy."""
    default_tier: Literal["cheap", "standard", "premium"] = "standard"
    auto_route: bool = True  # Pick the tier from classification; else use default_tier
    fallback_enabled: bool = True
    max_attempts: int = Field(default=3, ge=1)  # Per candidate, first call included
    max_fallback_models: int = Field(default=3, ge=1)  # Candidates tried in total
    backoff_base: float = Field(default=0.5, ge=0)  # Seconds
    backoff_max: float = Field(default=8.0, ge=0)
    request_timeout: float | None = 60.0  # Seconds; None leaves it to the vendor

    @field_validator("backoff_max")
    @classmethod
    def _max_not_below_base(cls, v: float, info) -> float:
        base = info.data.get("backoff_base", 0)
        if v < base:
            raise ValueError("backoff_max must not be smaller than backoff_base")
        return v


class LoggingConfig(BaseModel):
    """Logging sinks."""
    enabled: bool = True
    level: str = "INFO"
    log_file: str | None = None

    @property
    def log_path(self) -> Path | None:
        return Path(self.log_file).expanduser() if self.log_file else None


class Config(BaseSettings):
    """Root configuration for promptrouter."""
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_api_key(self, provider: str) -> str | None:
        """
        Get the API key configured for a provider.

        Args:
            provider: Provider name, e.g. 'anthropic'.

        Returns:
            API key string or None.
        """
        provider_config = getattr(self.providers, provider, None)
        if provider_config:
            return provider_config.api_key or None
        return None

    def get_api_base(self, provider: str) -> str | None:
        provider_config = getattr(self.providers, provider, None)
        if provider_config and provider_config.api_base:
            return provider_config.api_base
        return None

    def configured_providers(self) -> list[str]:
        return [name for name in ProvidersConfig.model_fields if self.get_api_key(name)]

    class Config:
        env_prefix = "PROMPTROUTER_"
        env_nested_delimiter = "__"
