"""
Semantic graph module: KNN neighbors and relation labels for cards.

Provides:
- Exact top-K cosine neighbors over pre-computed, normalized embeddings
- A signature-keyed cache of the neighbor table
- Relation labeling of candidate edges through an OpenAI-compatible API,
  cached per model version

Non-goals: approximate nearest-neighbor indexes and incremental updates;
the index is rebuilt whole when the card set changes.
"""

from cardgraph.semantic.edge_labeler import EdgeLabeler
from cardgraph.semantic.graph_service import CardGraphService
from cardgraph.semantic.knn_index import IndexCache, KNNIndexBuilder, knn_edges, signature
from cardgraph.semantic.label_queue import LabelRequestQueue
from cardgraph.semantic.models import (
    DEFAULT_RELATION,
    RELATIONS,
    Card,
    Edge,
    KNNTable,
    NeighborEntry,
    RelationLabel,
    edge_key,
)
from cardgraph.semantic.relation_cache import RelationCache
from cardgraph.semantic.similarity_engine import SimilarityEngine, iter_top_k

__all__ = [
    # Data model
    "Card",
    "Edge",
    "KNNTable",
    "NeighborEntry",
    "RelationLabel",
    "RELATIONS",
    "DEFAULT_RELATION",
    "edge_key",
    # KNN
    "SimilarityEngine",
    "iter_top_k",
    "signature",
    "IndexCache",
    "KNNIndexBuilder",
    "knn_edges",
    # Labeling
    "RelationCache",
    "LabelRequestQueue",
    "EdgeLabeler",
    # Facade
    "CardGraphService",
]
