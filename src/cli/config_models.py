"""Pydantic configuration models for mentorflow."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_COMPLETION_PROVIDERS = {"claude", "openai", "gemini"}
VALID_EMBEDDING_PROVIDERS = {"openai", "gemini"}


def _expand_env(value: Optional[str]) -> Optional[str]:
    """Expand a ${VAR} reference; other values pass through."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1], "")
    return value


class ProviderEntry(BaseModel):
    """One candidate in a capability's priority list."""

    name: str
    model: Optional[str] = None  # None = use provider default
    api_key: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)


class ProvidersConfig(BaseModel):
    """Provider priority lists and circuit-breaker tuning."""

    completion: list[ProviderEntry] = Field(
        default_factory=lambda: [
            ProviderEntry(name="claude"),
            ProviderEntry(name="openai"),
            ProviderEntry(name="gemini"),
        ]
    )
    embedding: list[ProviderEntry] = Field(
        default_factory=lambda: [
            ProviderEntry(name="openai", timeout=10.0),
            ProviderEntry(name="gemini", timeout=10.0),
        ]
    )
    base_cooldown_seconds: float = Field(default=30.0, gt=0)
    max_cooldown_seconds: float = Field(default=600.0, gt=0)
    fallback_embedding_dimension: int = Field(default=128, ge=8)

    @field_validator("completion")
    @classmethod
    def validate_completion(cls, v: list[ProviderEntry]) -> list[ProviderEntry]:
        for entry in v:
            if entry.name not in VALID_COMPLETION_PROVIDERS:
                raise ValueError(
                    f"Invalid completion provider: {entry.name}. "
                    f"Must be one of {VALID_COMPLETION_PROVIDERS}"
                )
        return v

    @field_validator("embedding")
    @classmethod
    def validate_embedding(cls, v: list[ProviderEntry]) -> list[ProviderEntry]:
        for entry in v:
            if entry.name not in VALID_EMBEDDING_PROVIDERS:
                raise ValueError(
                    f"Invalid embedding provider: {entry.name}. "
                    f"Must be one of {VALID_EMBEDDING_PROVIDERS}"
                )
        return v

    @model_validator(mode="after")
    def validate_cooldowns(self):
        if self.max_cooldown_seconds < self.base_cooldown_seconds:
            raise ValueError("max_cooldown_seconds must be >= base_cooldown_seconds")
        return self


class ContextConfig(BaseModel):
    """Token budgets per context level and selection breadth."""

    budgets: dict[str, int] = Field(
        default_factory=lambda: {"light": 500, "recent": 1500, "selective": 3000, "full": 8000}
    )
    light_memory_hits: int = Field(default=2, ge=0)
    recent_turns: int = Field(default=6, ge=0)
    selective_facts: int = Field(default=5, ge=0)
    max_response_tokens: int = Field(default=1500, gt=0)

    @field_validator("budgets")
    @classmethod
    def validate_budgets(cls, v: dict[str, int]) -> dict[str, int]:
        valid = {"light", "recent", "selective", "full"}
        for level, budget in v.items():
            if level not in valid:
                raise ValueError(f"Unknown context level: {level}. Must be one of {valid}")
            if budget < 0:
                raise ValueError(f"Budget for {level} must be >= 0, got {budget}")
        return v


class MemoryConfig(BaseModel):
    """Memory store configuration."""

    backend: str = "sqlite"
    db_path: Path = Path("~/.mentorflow/memory.db")
    chroma_dir: Optional[Path] = None
    default_limit: int = Field(default=5, ge=1)
    default_min_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    personal_limit: int = Field(default=10, ge=1)
    personal_min_similarity: float = Field(default=0.1, ge=0.0, le=1.0)
    lookup_timeout_seconds: float = Field(default=3.0, gt=0)
    sweep_interval_minutes: int = Field(default=60, ge=1)
    grace_period_hours: float = Field(default=24.0, ge=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in {"sqlite", "memory"}:
            raise ValueError(f"Invalid memory backend: {v}. Must be 'sqlite' or 'memory'")
        return v

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        if self.chroma_dir:
            self.chroma_dir = self.chroma_dir.expanduser()
        return self


class WebSearchConfig(BaseModel):
    """Web-search decision and client configuration."""

    enabled: bool = False
    decision_ttl_seconds: float = Field(default=300.0, gt=0)
    timeout_seconds: float = Field(default=8.0, gt=0)
    tavily_api_key: Optional[str] = None
    max_results: int = Field(default=5, ge=1)


class ValidationConfig(BaseModel):
    """Response validation policy."""

    enabled: bool = True
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_regenerations: int = Field(default=1, ge=0, le=1)


class InputConfig(BaseModel):
    """Inbound message limits."""

    max_length: int = Field(default=4000, ge=1)


class RetryConfig(BaseModel):
    """Retry/backoff for background memory writes."""

    max_attempts: int = Field(default=3, ge=1)
    min_wait: float = 0.5
    max_wait: float = 5.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_output: bool = Field(default=False, alias="json")

    model_config = {"populate_by_name": True}

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class PipelineConfig(BaseModel):
    """Main configuration model."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    web_search: WebSearchConfig = Field(default_factory=WebSearchConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        for entry in [*self.providers.completion, *self.providers.embedding]:
            entry.api_key = _expand_env(entry.api_key)
        self.web_search.tavily_api_key = _expand_env(self.web_search.tavily_api_key)
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "PipelineConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
