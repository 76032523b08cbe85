"""Configuration models for the Concierge service and its components."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class ContextConfig(BaseModel):
    """Configuration for the context window manager and summariser."""

    window_size: int = Field(
        default=20,
        ge=1,
        description="Maximum number of recent messages passed verbatim to the completion engine.",
    )

    summarize_trigger: int = Field(
        default=30,
        ge=2,
        description=(
            "Message count above which older messages are folded into the rolling "
            "summary. Counted from the summary cursor once one exists."
        ),
    )

    summary_max_tokens: int = Field(
        default=1024,
        ge=64,
        le=32_000,
        description="Hard output-token bound for a single summarisation call.",
    )

    summary_model: str = Field(
        default="anthropic/claude-3-5-haiku-latest",
        description="Small model used for summarisation, in litellm format.",
    )

    @model_validator(mode="after")
    def validate_trigger(self) -> ContextConfig:
        if self.summarize_trigger <= self.window_size:
            raise ValueError("summarize_trigger must be strictly greater than window_size")
        return self


class StoreConfig(BaseModel):
    """Configuration for the SQLite persistence layer."""

    db_path: str = Field(
        default="~/.concierge/concierge.db",
        description="Path to the SQLite database file. ~ is expanded at runtime.",
    )

    wal_mode: bool = True
    """Use WAL journal mode for better concurrent read performance."""

    connection_timeout: float = 30.0
    """Seconds to wait for the database connection before raising."""


class CacheConfig(BaseModel):
    """Configuration for the volatile (Redis) cache."""

    redis_url: str = "redis://localhost:6379/0"

    key_prefix: str = Field(
        default="",
        description="Optional namespace prepended to every cache key.",
    )

    suggestion_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Lifetime of cached suggestions and pending-build markers.",
    )

    skills_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="Lifetime of the plugin skills catalog in both cache tiers.",
    )


class CompletionConfig(BaseModel):
    """Configuration for the completion engine adapter."""

    model: str = "anthropic/claude-sonnet-4-20250514"
    max_tokens: int = Field(default=4096, ge=1)
    timeout_seconds: float = Field(default=60.0, gt=0)
    temperature: float | None = None


class VerifierConfig(BaseModel):
    """Configuration for the plugin/policy verifier client."""

    url: str | None = Field(
        default=None,
        description="Base URL of the verifier service. None disables Build and plugin discovery.",
    )
    timeout_seconds: float = Field(default=30.0, gt=0)


class MemoryConfig(BaseModel):
    """Configuration for the per-user memory document."""

    enabled: bool = True
    max_chars: int = Field(default=4000, ge=1)


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class ConciergeConfig(BaseModel):
    """
    Top-level configuration for a Concierge deployment.

    All sub-configs have sensible defaults and can be overridden individually.

    Example::

        config = ConciergeConfig(
            context=ContextConfig(window_size=10, summarize_trigger=16),
            cache=CacheConfig(redis_url="redis://cache:6379/1"),
        )
    """

    context: ContextConfig = Field(default_factory=ContextConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    verifier: VerifierConfig = Field(default_factory=VerifierConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> ConciergeConfig:
        """Return a config instance with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConciergeConfig:
        """
        Build a config from ``CONCIERGE_*`` environment variables.

        Unset variables keep their defaults. Values are validated by the
        same pydantic models, so a malformed number raises ``ValidationError``.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.
        """
        env = os.environ if environ is None else environ

        def pick(mapping: dict[str, str]) -> dict[str, Any]:
            return {field: env[var] for var, field in mapping.items() if env.get(var)}

        return cls(
            context=ContextConfig(
                **pick({
                    "CONCIERGE_WINDOW_SIZE": "window_size",
                    "CONCIERGE_SUMMARIZE_TRIGGER": "summarize_trigger",
                    "CONCIERGE_SUMMARY_MAX_TOKENS": "summary_max_tokens",
                    "CONCIERGE_SUMMARY_MODEL": "summary_model",
                })
            ),
            store=StoreConfig(**pick({"CONCIERGE_DB_PATH": "db_path"})),
            cache=CacheConfig(
                **pick({
                    "CONCIERGE_REDIS_URL": "redis_url",
                    "CONCIERGE_CACHE_PREFIX": "key_prefix",
                })
            ),
            completion=CompletionConfig(**pick({"CONCIERGE_MODEL": "model"})),
            verifier=VerifierConfig(**pick({"CONCIERGE_VERIFIER_URL": "url"})),
            logging=LoggingConfig(
                **pick({
                    "CONCIERGE_LOG_LEVEL": "level",
                    "CONCIERGE_LOG_FORMAT": "format",
                })
            ),
        )
