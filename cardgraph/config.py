"""
Configuration settings for the cardgraph service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///cardgraph.db",
        description="SQLAlchemy URL of the key-value store backing both caches",
    )

    # ========================================
    # KNN Index
    # ========================================
    embedding_dimension: int = Field(
        default=384,
        description="Fallback dimension recorded when no card has a vector",
    )
    knn_k: int = Field(
        default=32,
        description="Neighbors kept per card",
    )
    knn_yield_every: int = Field(
        default=64,
        description="Rows scanned between yields to the event loop",
    )
    knn_cache_key: str = Field(
        default="quickflash_knn_v1",
        description="Base key for persisted KNN tables",
    )
    knn_min_edge_score: float = Field(
        default=0.0,
        description="Neighbors at or below this score do not become candidate edges",
    )

    # ========================================
    # Edge Labeling (OpenAI-compatible endpoint)
    # ========================================
    edge_labeling_enabled: bool = Field(
        default=True,
        description="Master switch for remote relation labeling",
    )
    label_cache_key: str = Field(
        default="quickflash_edge_labels",
        description="Store key holding the relation label mapping",
    )
    label_api_key: str = Field(
        default="",
        description="API key for the labeling provider",
    )
    label_fallback_api_key: str = Field(
        default="",
        description="Secondary API key used when label_api_key is empty",
    )
    label_base_url: str = Field(
        default="https://smart.ultimateai.org/v1",
        description="Base URL of the chat-completion API",
    )
    label_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used for relation labeling",
    )
    label_temperature: float = Field(
        default=0.0,
        description="Sampling temperature for labeling calls",
    )
    label_max_concurrency: int = Field(
        default=1,
        description="Maximum labeling calls in flight",
    )
    label_base_backoff_ms: int = Field(
        default=1000,
        description="First retry delay on 429/5xx (doubles per attempt)",
    )
    label_max_backoff_ms: int = Field(
        default=30000,
        description="Upper bound on the retry delay",
    )
    label_jitter_ms: int = Field(
        default=250,
        description="Random jitter added to each retry delay",
    )
    label_request_timeout: float = Field(
        default=60.0,
        description="Per-attempt HTTP timeout in seconds",
    )
    label_prompt_max_chars: int = Field(
        default=10000,
        description="Maximum characters of serialized pairs embedded in the prompt",
    )
    label_unknown_policy: Literal["accept", "default"] = Field(
        default="accept",
        description="Out-of-taxonomy labels: cache as returned, or drop and fall back",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_label_api_key(self) -> str:
        """Return the active labeling key, preferring the primary one."""
        return self.label_api_key or self.label_fallback_api_key or ""

    def has_labeling_configured(self) -> bool:
        """Check if remote labeling can issue requests."""
        return self.edge_labeling_enabled and bool(self.get_label_api_key())

    def get_label_base_url(self) -> str:
        """Base URL without trailing slashes."""
        return self.label_base_url.rstrip("/")

    def get_model_version_tag(self) -> str:
        """
        Tag identifying the labeling model and provider.

        Switching model or endpoint changes the tag, so labels cached under
        another provider are never reused.
        """
        safe_base = self.get_label_base_url().replace("|", "")
        return f"{self.label_model}@{safe_base}"

    def get_knn_config(self) -> dict[str, Any]:
        """Get KNN index configuration as a dictionary."""
        return {
            "k": self.knn_k,
            "yield_every": self.knn_yield_every,
            "cache_key": self.knn_cache_key,
            "min_edge_score": self.knn_min_edge_score,
            "fallback_dimension": self.embedding_dimension,
        }

    def get_labeling_config(self) -> dict[str, Any]:
        """Get edge labeling configuration as a dictionary (key masked)."""
        key = self.get_label_api_key()
        return {
            "enabled": self.edge_labeling_enabled,
            "api_key": f"{key[:4]}..." if key else "",
            "base_url": self.get_label_base_url(),
            "model": self.label_model,
            "model_version": self.get_model_version_tag(),
            "max_concurrency": self.label_max_concurrency,
            "backoff_ms": (self.label_base_backoff_ms, self.label_max_backoff_ms),
            "jitter_ms": self.label_jitter_ms,
            "unknown_policy": self.label_unknown_policy,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
