"""Tests for configuration models and environment loading."""

from __future__ import annotations

import re
from importlib.metadata import version

import pytest

import concierge
from concierge.models.config import (
    CacheConfig,
    ConciergeConfig,
    ContextConfig,
    LoggingConfig,
    MemoryConfig,
    VerifierConfig,
)


class TestContextConfig:
    def test_defaults(self) -> None:
        cfg = ContextConfig()
        assert cfg.window_size == 20
        assert cfg.summarize_trigger == 30
        assert cfg.summary_max_tokens == 1024

    def test_trigger_must_exceed_window(self) -> None:
        with pytest.raises(ValueError, match="strictly greater"):
            ContextConfig(window_size=10, summarize_trigger=10)
        with pytest.raises(ValueError):
            ContextConfig(window_size=10, summarize_trigger=5)

    def test_custom_values(self) -> None:
        cfg = ContextConfig(window_size=4, summarize_trigger=6)
        assert (cfg.window_size, cfg.summarize_trigger) == (4, 6)

    def test_bounds_enforced(self) -> None:
        with pytest.raises(ValueError):
            ContextConfig(window_size=0)
        with pytest.raises(ValueError):
            ContextConfig(summary_max_tokens=10)


class TestConciergeConfig:
    def test_default_sub_configs(self) -> None:
        cfg = ConciergeConfig.default()
        assert cfg.cache.suggestion_ttl_seconds == 3600
        assert cfg.cache.skills_ttl_seconds == 300
        assert cfg.memory == MemoryConfig(enabled=True, max_chars=4000)
        assert cfg.verifier.url is None
        assert cfg.logging.format == "json"

    def test_suggestion_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            CacheConfig(suggestion_ttl_seconds=0)

    def test_unknown_log_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            LoggingConfig(format="xml")  # type: ignore[arg-type]


class TestFromEnv:
    def test_empty_environment_gives_defaults(self) -> None:
        assert ConciergeConfig.from_env({}) == ConciergeConfig()

    def test_overrides(self) -> None:
        cfg = ConciergeConfig.from_env(
            {
                "CONCIERGE_WINDOW_SIZE": "8",
                "CONCIERGE_SUMMARIZE_TRIGGER": "12",
                "CONCIERGE_DB_PATH": "/tmp/c.db",
                "CONCIERGE_REDIS_URL": "redis://cache:6379/2",
                "CONCIERGE_VERIFIER_URL": "https://verifier.example",
                "CONCIERGE_MODEL": "anthropic/other",
                "CONCIERGE_LOG_FORMAT": "text",
            }
        )
        assert cfg.context.window_size == 8
        assert cfg.context.summarize_trigger == 12
        assert cfg.store.db_path == "/tmp/c.db"
        assert cfg.cache.redis_url == "redis://cache:6379/2"
        assert cfg.verifier == VerifierConfig(url="https://verifier.example")
        assert cfg.completion.model == "anthropic/other"
        assert cfg.logging.format == "text"

    def test_empty_values_are_ignored(self) -> None:
        cfg = ConciergeConfig.from_env({"CONCIERGE_WINDOW_SIZE": ""})
        assert cfg.context.window_size == 20

    def test_malformed_number_raises(self) -> None:
        with pytest.raises(ValueError):
            ConciergeConfig.from_env({"CONCIERGE_WINDOW_SIZE": "many"})

    def test_invalid_combination_raises(self) -> None:
        with pytest.raises(ValueError):
            ConciergeConfig.from_env({"CONCIERGE_WINDOW_SIZE": "40"})


class TestVersion:
    """__version__ matches the installed package metadata."""

    def test_version_matches_package_metadata(self) -> None:
        assert concierge.__version__ == version("concierge")

    def test_version_has_semver_shape(self) -> None:
        parts = concierge.__version__.split(".")
        assert len(parts) >= 2, "Expected at least MAJOR.MINOR"
        assert all(re.match(r"^\d", p) for p in parts), "Each segment must start with a digit"
