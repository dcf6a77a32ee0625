"""cardgraph - Semantic relationship graphs for flashcard collections."""

from cardgraph.exceptions import CardGraphError, InvalidInputError
from cardgraph.semantic import CardGraphService, Edge, KNNTable

__version__ = "1.0.0"

__all__ = [
    "CardGraphService",
    "CardGraphError",
    "InvalidInputError",
    "Edge",
    "KNNTable",
]
