"""
Edge Labeler - Assign relation labels to candidate edges.

Flow for one call:
1. Canonicalize every edge key (undirected) and read the relation cache
2. Collect cache misses, one per canonical key
3. Send the misses as one batch through the label request queue
4. Write returned {id, label} pairs back to the cache
5. Re-read the cache and answer in input order, `same-topic` where absent

Labeling is best-effort: remote failures only mean default labels.
"""

from __future__ import annotations

from collections.abc import Container, Mapping, Sequence
from typing import Any, Union

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from cardgraph.config import Settings, get_settings
from cardgraph.semantic.label_queue import LabelRequestQueue
from cardgraph.semantic.models import DEFAULT_RELATION, KEY_SEPARATOR, RELATIONS, Card, Edge, edge_key
from cardgraph.semantic.relation_cache import RelationCache

EdgeLike = Union[Edge, Mapping[str, Any]]
CardLike = Union[Card, Mapping[str, Any]]


def _endpoints(edge: EdgeLike) -> tuple[str, str]:
    if isinstance(edge, Edge):
        return str(edge.source), str(edge.target)
    return str(edge["source"]), str(edge["target"])


def _as_card(card_id: str, card: CardLike | None) -> Card | None:
    if card is None or isinstance(card, Card):
        return card
    return Card.from_dict({"id": card_id, **card})


class EdgeLabeler:
    """
    Label edges with the relation taxonomy, caching per model version.

    Example:
        >>> labeler = EdgeLabeler(RelationCache(store), LabelRequestQueue())
        >>> await labeler.label_edges([Edge("tcp", "udp")], cards)
        ['contrasts-with']
    """

    def __init__(
        self,
        relation_cache: RelationCache,
        queue: LabelRequestQueue,
        settings: Settings | None = None,
    ):
        self.relation_cache = relation_cache
        self.queue = queue
        self.settings = settings or get_settings()

    @property
    def model_version(self) -> str:
        return self.settings.get_model_version_tag()

    def _build_pairs(
        self,
        misses: Mapping[str, tuple[str, str]],
        cards: Mapping[str, CardLike],
    ) -> list[dict[str, Any]]:
        pairs = []
        for key, (source, target) in misses.items():
            a = _as_card(source, cards.get(source))
            b = _as_card(target, cards.get(target))
            if a is None or b is None:
                logger.warning(f"Edge {key} references an unknown card; keeping default label")
                continue
            pairs.append({"id": key, "A": a.to_payload(), "B": b.to_payload()})
        return pairs

    def _accept(self, results: list[dict[str, Any]], requested: Container[str]) -> dict[str, str]:
        accepted: dict[str, str] = {}
        rejected = 0
        for item in results:
            rid, label = item.get("id"), item.get("label")
            if not rid or not label or KEY_SEPARATOR not in str(rid):
                continue
            # The model may echo the pair reversed.
            key = edge_key(*str(rid).split(KEY_SEPARATOR, 1))
            if key not in requested:
                rejected += 1
                continue
            label = str(label)
            if label not in RELATIONS and self.settings.label_unknown_policy == "default":
                rejected += 1
                continue
            accepted[key] = label
        if rejected:
            logger.debug(f"Dropped {rejected} labels for unrequested edges or outside the taxonomy")
        return accepted

    async def label_edges(
        self,
        edges: Sequence[EdgeLike],
        cards: Mapping[str, CardLike],
        timeout: float | None = None,
    ) -> list[str]:
        """
        Label edges, consulting the cache before any remote call.

        Args:
            edges: Edges (or {source, target} mappings) to label.
            cards: Card id -> card record, used for the prompt payload.
            timeout: Optional deadline in seconds for the remote batch.

        Returns:
            One label per input edge, in input order.
        """
        if not edges:
            return []

        model_version = self.model_version
        endpoints = [_endpoints(edge) for edge in edges]
        keys = [edge_key(source, target) for source, target in endpoints]
        cached = self.relation_cache.get_many(dict.fromkeys(keys), model_version)

        misses: dict[str, tuple[str, str]] = {}
        for key, pair in zip(keys, endpoints):
            if key not in cached and key not in misses:
                misses[key] = pair

        if misses:
            logger.info(f"Labeling {len(misses)} uncached edges ({len(edges) - len(misses)} cached or repeated)")
            pairs = self._build_pairs(misses, cards)
            if pairs:
                results = await self.queue.submit(pairs, timeout=timeout)
                self.relation_cache.put_many(self._accept(results, {pair["id"] for pair in pairs}), model_version)
            cached = self.relation_cache.get_many(dict.fromkeys(keys), model_version)

        return [cached.get(key) or DEFAULT_RELATION for key in keys]

    async def attach_relations(
        self,
        edges: list[Edge],
        cards: Mapping[str, CardLike],
        timeout: float | None = None,
    ) -> list[Edge]:
        """
        Set `relation` on every edge in place.

        Store failures leave every edge at the default label; remote
        failures already resolve to defaults inside the queue, so the graph
        stays usable offline.
        """
        if not edges:
            return edges
        try:
            labels = await self.label_edges(edges, cards, timeout=timeout)
        except SQLAlchemyError as e:
            logger.warning(f"Edge labeling failed, using '{DEFAULT_RELATION}': {e}")
            labels = [DEFAULT_RELATION] * len(edges)

        for edge, label in zip(edges, labels):
            edge.relation = label or DEFAULT_RELATION
        return edges
