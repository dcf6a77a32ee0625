"""
KNN Index - Build or load the nearest-neighbor table for a card collection.

The table is cached in the key-value store under
`{base_key}:{K}:{signature}`, where the signature fingerprints the ordered
id sequence and the vector dimensionality. The whole table is rebuilt when
the card set is reordered, grown, shrunk, re-embedded with a different
dimensionality, or K changes; otherwise it is loaded verbatim.

Vector values are not re-validated on a cache hit: a given card id is
assumed to keep the same embedding.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence

import numpy as np
from loguru import logger

from cardgraph.config import Settings, get_settings
from cardgraph.db.kv_store import KeyValueStore
from cardgraph.exceptions import InvalidInputError
from cardgraph.semantic.models import KEY_SEPARATOR, Edge, KNNTable, NeighborEntry
from cardgraph.semantic.similarity_engine import SimilarityEngine

SIGNATURE_HASH_LENGTH = 16

Vector = Sequence[float] | np.ndarray


def hash_ids(ids: Sequence[str]) -> str:
    """Deterministic short hash of an ordered id sequence (SHA-1, hex, truncated)."""
    joined = KEY_SEPARATOR.join(str(i) for i in ids)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()[:SIGNATURE_HASH_LENGTH]


def signature(ids: Sequence[str], dim: int) -> str:
    """Fingerprint of (ids, dim) used to detect a stale cached table."""
    return f"{hash_ids(ids)}:{dim}"


class IndexCache:
    """Persisted KNN tables keyed by base key, K and signature."""

    def __init__(self, store: KeyValueStore, base_key: str | None = None):
        self.store = store
        self.base_key = base_key or get_settings().knn_cache_key

    def storage_key(self, k: int, sig: str, base_key: str | None = None) -> str:
        return f"{base_key or self.base_key}:{k}:{sig}"

    def load(
        self,
        ids: Sequence[str],
        k: int,
        dim: int,
        base_key: str | None = None,
    ) -> KNNTable | None:
        """
        Return the cached table for this exact build, or None.

        Any mismatch in ids (element-wise, order sensitive), K, dim or
        signature is a miss, not an error.
        """
        sig = signature(ids, dim)
        key = self.storage_key(k, sig, base_key)
        data = self.store.get(key)
        if not isinstance(data, dict):
            return None

        if (
            data.get("K") != k
            or data.get("dim") != dim
            or data.get("signature") != sig
            or list(data.get("ids") or []) != list(ids)
        ):
            logger.debug(f"Ignoring stale KNN cache entry {key}")
            return None

        try:
            return KNNTable.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Unreadable KNN cache entry {key}: {e}")
            return None

    def save(self, table: KNNTable, base_key: str | None = None) -> None:
        self.store.set(self.storage_key(table.k, table.signature, base_key), table.to_dict())

    def clear(self, base_key: str | None = None) -> int:
        """Remove every cached table under the base key. Returns the count removed."""
        prefix = f"{base_key or self.base_key}:"
        removed = 0
        for key in self.store.keys(prefix):
            if self.store.delete(key):
                removed += 1
        logger.info(f"Cleared {removed} cached KNN tables ({prefix}*)")
        return removed


class KNNIndexBuilder:
    """
    Build or load the KNN table for an ordered list of card ids.

    Example:
        >>> builder = KNNIndexBuilder(InMemoryStore())
        >>> table = await builder.build(embeddings, ids, k=32)
        >>> table.neighbors_of(ids[0])[:3]
    """

    def __init__(
        self,
        store: KeyValueStore,
        engine: SimilarityEngine | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.cache = IndexCache(store, self.settings.knn_cache_key)
        self.engine = engine or SimilarityEngine(self.settings.knn_yield_every)

    def _dimension(self, vectors: Sequence[Vector | None]) -> int:
        for vector in vectors:
            if vector is not None and len(vector) > 0:
                return len(vector)
        return self.settings.embedding_dimension

    async def build(
        self,
        embeddings: Mapping[str, Vector],
        ids: Sequence[str],
        k: int | None = None,
        cache_key_prefix: str | None = None,
    ) -> KNNTable:
        """
        Return the KNN table for `ids`, from cache when the signature matches.

        Args:
            embeddings: Card id -> unit-normalized vector. Ids without a
                vector get an empty neighbor list.
            ids: Ordered card ids; the order is part of the cache identity.
            k: Neighbors per card (default from settings).
            cache_key_prefix: Override of the base cache key.

        Raises:
            InvalidInputError: If ids is empty or k is not positive.
        """
        k = self.settings.knn_k if k is None else k
        if not ids:
            raise InvalidInputError("Cannot build a KNN index over an empty id set")
        if k <= 0:
            raise InvalidInputError(f"k must be positive, got {k}")

        ids = [str(i) for i in ids]
        vectors = [embeddings.get(i) for i in ids]
        dim = self._dimension(vectors)

        cached = self.cache.load(ids, k, dim, cache_key_prefix)
        if cached is not None:
            logger.debug(f"KNN cache hit for {len(ids)} cards (K={k}, dim={dim})")
            return cached

        logger.info(f"Building KNN index for {len(ids)} cards (K={k}, dim={dim})")
        rows = await self.engine.top_k(vectors, k)
        table = KNNTable(
            ids=ids,
            k=k,
            dim=dim,
            signature=signature(ids, dim),
            neighbors=[[NeighborEntry(score, ids[j]) for score, j in row] for row in rows],
        )
        self.cache.save(table, cache_key_prefix)
        logger.info(f"KNN index built and cached ({table.signature})")
        return table


def knn_edges(table: KNNTable, min_score: float = 0.0) -> list[Edge]:
    """
    Turn neighbor lists into undirected candidate edges.

    Row i emits an edge to neighbor j only when j comes after i in
    `table.ids` and the score is above `min_score`. A pair listed only by
    the later card's row does not become an edge.
    """
    position = {card_id: i for i, card_id in enumerate(table.ids)}
    edges: list[Edge] = []
    for i, (card_id, row) in enumerate(zip(table.ids, table.neighbors)):
        for entry in row:
            if entry.score <= min_score or position.get(entry.id, -1) <= i:
                continue
            edges.append(Edge(source=card_id, target=entry.id, score=entry.score))
    return edges
