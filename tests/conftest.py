"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from cardgraph.config import Settings, get_settings
from cardgraph.db.kv_store import InMemoryStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory or SQLite stores)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached process-wide; drop the cache around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_settings(**overrides: Any) -> Settings:
    """Deterministic settings: a test key, no backoff delay, no jitter."""
    values: dict[str, Any] = {
        "database_url": "sqlite://",
        "label_api_key": "test-key",
        "label_fallback_api_key": "",
        "label_base_url": "https://llm.example.test/v1/",
        "label_model": "test-model",
        "label_base_backoff_ms": 0,
        "label_max_backoff_ms": 0,
        "label_jitter_ms": 0,
        "label_max_concurrency": 1,
        "edge_labeling_enabled": True,
        "label_unknown_policy": "accept",
        "knn_k": 2,
        "knn_yield_every": 64,
        "knn_min_edge_score": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def chat_response(content: Any, status_code: int = 200) -> httpx.Response:
    """Chat-completion response whose message content is `content` (JSON-encoded unless str)."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return httpx.Response(
        status_code,
        json={"choices": [{"message": {"role": "assistant", "content": content}}]},
    )


def request_pairs(request: httpx.Request) -> list[dict[str, Any]]:
    """Recover the pairs embedded in a labeling request's user message."""
    body = json.loads(request.content)
    user_message = body["messages"][1]["content"]
    return json.loads(user_message.split("Pairs:\n", 1)[1])


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sample_cards() -> dict[str, dict[str, Any]]:
    """Four networking cards keyed by id."""
    return {
        "osi": {
            "front": "What is the OSI model?",
            "back": "A 7-layer reference model for network communication",
            "tags": ["networking", "osi"],
            "context": "Module 3",
            "source": "CCNA ITN 3.5",
        },
        "tcp": {
            "front": "What is TCP?",
            "back": "A connection-oriented transport protocol",
            "tags": ["networking", "transport"],
            "context": "Module 14",
            "source_url": "https://example.test/tcp",
        },
        "udp": {
            "front": "What is UDP?",
            "back": "A connectionless transport protocol",
            "tags": ["networking", "transport"],
            "context": "Module 14",
        },
        "ip": {
            "front": "What does IP provide?",
            "back": "Best-effort logical addressing and routing",
            "tags": ["networking"],
            "context": "Module 8",
        },
    }


@pytest.fixture
def sample_embeddings() -> dict[str, list[float]]:
    """Unit vectors: tcp and udp close together, osi and ip near each other."""
    return {
        "osi": [1.0, 0.0, 0.0],
        "tcp": [0.0, 0.8, 0.6],
        "udp": [0.0, 0.6, 0.8],
        "ip": [0.8, 0.6, 0.0],
    }
