"""
Similarity Engine - Exact top-K cosine neighbors over normalized embeddings.

Embeddings arrive unit-normalized from the embedding provider, so cosine
similarity is a plain dot product and scores are returned as-is in [-1, 1].

The scan is exact and O(N²·D). That is fine for collections in the hundreds
to low thousands of cards; there is no approximate index. Each row keeps a
bounded min-heap of size K: a candidate replaces the weakest entry only when
it scores higher.

Ties between equal scores are not broken in any guaranteed order.
"""

from __future__ import annotations

import asyncio
import heapq
from collections.abc import Iterator, Sequence

import numpy as np
from loguru import logger

from cardgraph.exceptions import InvalidInputError

# (score, index into the input sequence)
ScoredIndex = tuple[float, int]


def _is_missing(vector) -> bool:
    return vector is None or len(vector) == 0


def stack_vectors(vectors: Sequence[Sequence[float] | np.ndarray | None]) -> tuple[np.ndarray, list[int]]:
    """
    Stack the present vectors into a matrix.

    Returns:
        (matrix, present) where matrix[p] is the vector of input row present[p].

    Raises:
        InvalidInputError: If present vectors differ in dimensionality.
    """
    present = [i for i, v in enumerate(vectors) if not _is_missing(v)]
    if not present:
        return np.zeros((0, 0), dtype=np.float64), present

    dims = {len(vectors[i]) for i in present}
    if len(dims) > 1:
        raise InvalidInputError(f"Vectors must share one dimensionality, got {sorted(dims)}")

    matrix = np.vstack([np.asarray(vectors[i], dtype=np.float64) for i in present])
    return matrix, present


def iter_top_k(
    vectors: Sequence[Sequence[float] | np.ndarray | None],
    k: int,
) -> Iterator[list[ScoredIndex]]:
    """
    Yield the top-K neighbor list of every row, in input order.

    Rows without a vector yield an empty list and never appear as
    candidates for other rows. Each list is sorted by score descending and
    holds min(k, number of other present rows) entries.
    """
    if k <= 0:
        raise InvalidInputError(f"k must be positive, got {k}")

    matrix, present = stack_vectors(vectors)
    position = {row: pos for pos, row in enumerate(present)}

    for i in range(len(vectors)):
        pos_i = position.get(i)
        if pos_i is None:
            yield []
            continue

        scores = (matrix @ matrix[pos_i]).tolist()
        top: list[ScoredIndex] = []
        for pos_j, j in enumerate(present):
            if j == i:
                continue
            score = scores[pos_j]
            if len(top) < k:
                heapq.heappush(top, (score, j))
            elif score > top[0][0]:
                heapq.heapreplace(top, (score, j))

        top.sort(key=lambda entry: entry[0], reverse=True)
        yield top


class SimilarityEngine:
    """
    Cooperative wrapper around the exact top-K scan.

    Yields to the event loop every `yield_every` rows so a long scan
    interleaves with I/O-bound work (such as labeling calls) instead of
    blocking it. The interval only affects responsiveness, never results.

    Example:
        >>> engine = SimilarityEngine(yield_every=64)
        >>> rows = await engine.top_k([[1.0, 0.0], [0.9, 0.1], [-1.0, 0.0]], k=1)
        >>> rows[0]
        [(0.9, 1)]
    """

    DEFAULT_YIELD_EVERY = 64

    def __init__(self, yield_every: int | None = None):
        self.yield_every = yield_every if yield_every is not None else self.DEFAULT_YIELD_EVERY

    async def top_k(
        self,
        vectors: Sequence[Sequence[float] | np.ndarray | None],
        k: int,
    ) -> list[list[ScoredIndex]]:
        """
        Compute the top-K neighbor lists of all rows.

        Args:
            vectors: One vector (or None) per row.
            k: Neighbors kept per row.

        Returns:
            One list of (score, row index) per input row.
        """
        logger.debug(f"Scanning {len(vectors)} rows for top-{k} neighbors")
        rows: list[list[ScoredIndex]] = []
        for i, row in enumerate(iter_top_k(vectors, k)):
            rows.append(row)
            if self.yield_every > 0 and i % self.yield_every == 0:
                await asyncio.sleep(0)
        return rows
