"""
Relation Cache - Persisted edge labels, versioned by labeling model.

All labels live in one mapping stored under a single store key. Entries are
keyed `{edge_key}|{model_version_tag}`, so switching model or provider
never reuses labels produced by another one (old entries stay addressable
under their own tag). Entries are written lazily and never evicted.

Older data may hold labels under the bare edge key. The first versioned
lookup that finds only such a legacy entry copies it forward under the
versioned key.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from cardgraph.config import get_settings
from cardgraph.db.kv_store import KeyValueStore
from cardgraph.semantic.models import KEY_SEPARATOR


def versioned_key(edge_key: str, model_version: str) -> str:
    return f"{edge_key}{KEY_SEPARATOR}{model_version or 'default'}"


class RelationCache:
    """Label lookup and write-back over the key-value store."""

    def __init__(self, store: KeyValueStore, cache_key: str | None = None):
        self.store = store
        self.cache_key = cache_key or get_settings().label_cache_key

    def _load(self) -> dict[str, Any]:
        data = self.store.get(self.cache_key)
        return data if isinstance(data, dict) else {}

    def _save(self, mapping: dict[str, Any]) -> None:
        self.store.set(self.cache_key, mapping)

    def get(self, edge_key: str, model_version: str) -> str | None:
        """Return the cached label for an edge under a model version, if any."""
        return self.get_many([edge_key], model_version).get(edge_key)

    def get_many(self, edge_keys: Iterable[str], model_version: str) -> dict[str, str]:
        """
        Look up several edges with one read (and at most one migration write).

        Returns:
            edge_key -> label for every edge that has a label.
        """
        mapping = self._load()
        found: dict[str, str] = {}
        migrated = 0

        for key in edge_keys:
            vkey = versioned_key(key, model_version)
            if vkey in mapping:
                found[key] = mapping[vkey]
            elif key in mapping:
                mapping[vkey] = mapping[key]
                found[key] = mapping[key]
                migrated += 1

        if migrated:
            self._save(mapping)
            logger.info(f"Migrated {migrated} legacy edge labels to {model_version}")
        return found

    def put(self, edge_key: str, model_version: str, label: str) -> None:
        self.put_many({edge_key: label}, model_version)

    def put_many(self, labels: Mapping[str, str], model_version: str) -> int:
        """Write several labels with one read-modify-write. Returns the count written."""
        if not labels:
            return 0
        mapping = self._load()
        for key, label in labels.items():
            mapping[versioned_key(key, model_version)] = label
        self._save(mapping)
        logger.debug(f"Cached {len(labels)} edge labels under {model_version}")
        return len(labels)
