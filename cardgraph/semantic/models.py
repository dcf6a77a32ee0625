"""
Data model for the card relationship graph.

- Card: the small projection of a flashcard used in labeling prompts
- NeighborEntry / KNNTable: the persisted nearest-neighbor table
- Edge: an undirected pair of cards with an optional relation label
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple

# Separator for canonical edge keys and versioned cache keys.
# Card identifiers must not contain it.
KEY_SEPARATOR = "|"


class RelationLabel(str, Enum):
    """Closed relation taxonomy for semantic edges."""

    SAME_TOPIC = "same-topic"
    PREREQUISITE_OF = "prerequisite-of"
    PART_OF = "part-of"
    CAUSE_OF = "cause-of"
    CONTRASTS_WITH = "contrasts-with"
    DUPLICATE_OF = "duplicate-of"
    EXAMPLE_OF = "example-of"


RELATIONS: tuple[str, ...] = tuple(label.value for label in RelationLabel)
DEFAULT_RELATION = RelationLabel.SAME_TOPIC.value


def edge_key(source: str, target: str) -> str:
    """
    Canonical key of an undirected edge.

    The smaller identifier comes first, so (A, B) and (B, A) collide.
    """
    a, b = str(source), str(target)
    return f"{a}{KEY_SEPARATOR}{b}" if a < b else f"{b}{KEY_SEPARATOR}{a}"


@dataclass
class Card:
    """Card fields that are sent to the labeling model."""

    id: str
    front: str = ""
    back: str = ""
    tags: list[str] = field(default_factory=list)
    context: str = ""
    source: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        """Parse a card record; accepts 'source' or 'source_url'."""
        tags = data.get("tags") or []
        if isinstance(tags, str):
            tags = tags.split()
        return cls(
            id=str(data.get("id", "")),
            front=data.get("front") or "",
            back=data.get("back") or "",
            tags=list(tags),
            context=data.get("context") or "",
            source=data.get("source") or data.get("source_url"),
        )

    def to_payload(self) -> dict[str, Any]:
        """Compact projection embedded in the labeling request."""
        return {
            "front": self.front,
            "back": self.back,
            "tags": self.tags,
            "context": self.context,
            "source": self.source,
        }


class NeighborEntry(NamedTuple):
    """One neighbor of a card: raw dot-product score and neighbor id."""

    score: float
    id: str


@dataclass
class KNNTable:
    """
    Nearest-neighbor table for an ordered card set.

    `neighbors[i]` holds the neighbor list of `ids[i]`, sorted by score
    descending with at most `k` entries.
    """

    ids: list[str]
    k: int
    dim: int
    signature: str
    neighbors: list[list[NeighborEntry]]

    def neighbors_of(self, card_id: str) -> list[NeighborEntry]:
        """Neighbor list for a card id (empty if unknown)."""
        try:
            return self.neighbors[self.ids.index(card_id)]
        except ValueError:
            return []

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable document for the store."""
        return {
            "ids": list(self.ids),
            "K": self.k,
            "dim": self.dim,
            "signature": self.signature,
            "knn": [[[entry.score, entry.id] for entry in row] for row in self.neighbors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KNNTable:
        """Parse a stored document."""
        return cls(
            ids=list(data.get("ids") or []),
            k=int(data.get("K", 0)),
            dim=int(data.get("dim", 0)),
            signature=str(data.get("signature", "")),
            neighbors=[
                [NeighborEntry(float(score), str(nid)) for score, nid in row]
                for row in data.get("knn") or []
            ],
        )


@dataclass
class Edge:
    """Undirected candidate edge between two cards."""

    source: str
    target: str
    score: float | None = None
    relation: str | None = None

    @property
    def key(self) -> str:
        return edge_key(self.source, self.target)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "score": self.score,
            "relation": self.relation,
        }
