"""
Card Graph Service - KNN index, candidate edges and relation labels in one place.

The service owns its store, caches and request queue. Construct it once
and pass it to whatever needs graph data.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from cardgraph.config import Settings, get_settings
from cardgraph.db.kv_store import KeyValueStore, SqlKeyValueStore
from cardgraph.semantic.edge_labeler import CardLike, EdgeLabeler
from cardgraph.semantic.knn_index import KNNIndexBuilder, Vector, knn_edges
from cardgraph.semantic.label_queue import LabelRequestQueue
from cardgraph.semantic.models import Edge, KNNTable
from cardgraph.semantic.relation_cache import RelationCache
from cardgraph.semantic.similarity_engine import SimilarityEngine


class CardGraphService:
    """
    Build labeled semantic edges for a card collection.

    Example:
        >>> async with CardGraphService() as service:
        ...     edges = await service.build_graph(cards, embeddings)
        >>> edges[0].relation
        'prerequisite-of'
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        settings: Settings | None = None,
        queue: LabelRequestQueue | None = None,
        engine: SimilarityEngine | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else SqlKeyValueStore.from_url(self.settings.database_url)
        self.builder = KNNIndexBuilder(self.store, engine=engine, settings=self.settings)
        self.queue = queue or LabelRequestQueue(self.settings)
        self.relation_cache = RelationCache(self.store, self.settings.label_cache_key)
        self.labeler = EdgeLabeler(self.relation_cache, self.queue, self.settings)

    async def close(self) -> None:
        await self.queue.close()

    async def __aenter__(self) -> CardGraphService:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def build_index(
        self,
        embeddings: Mapping[str, Vector],
        ids: Sequence[str],
        k: int | None = None,
    ) -> KNNTable:
        return await self.builder.build(embeddings, ids, k)

    def candidate_edges(self, table: KNNTable, min_score: float | None = None) -> list[Edge]:
        threshold = self.settings.knn_min_edge_score if min_score is None else min_score
        return knn_edges(table, threshold)

    async def build_graph(
        self,
        cards: Mapping[str, CardLike],
        embeddings: Mapping[str, Vector],
        k: int | None = None,
        label: bool = True,
        timeout: float | None = None,
    ) -> list[Edge]:
        """
        Build (or load) the KNN index, extract edges and label them.

        Args:
            cards: Card id -> card record; its key order is the index order.
            embeddings: Card id -> unit-normalized vector.
            k: Neighbors per card (default from settings).
            label: Skip relation labeling when False.
            timeout: Optional deadline in seconds for the labeling call.

        Returns:
            Candidate edges with `score` and (when labeled) `relation` set.

        Raises:
            InvalidInputError: If there are no cards or k is not positive.
        """
        ids = list(cards.keys())
        table = await self.build_index(embeddings, ids, k)
        edges = self.candidate_edges(table)
        logger.info(f"{len(edges)} candidate edges from {len(ids)} cards")
        if label and edges:
            await self.labeler.attach_relations(edges, cards, timeout=timeout)
        return edges

    def clear_index_cache(self) -> int:
        return self.builder.cache.clear()

    def get_stats(self, edges: Sequence[Edge]) -> dict[str, Any]:
        """Count edges per relation label."""
        by_relation: dict[str, int] = {}
        for edge in edges:
            relation = edge.relation or "unlabeled"
            by_relation[relation] = by_relation.get(relation, 0) + 1
        return {"total": len(edges), "by_relation": by_relation}
