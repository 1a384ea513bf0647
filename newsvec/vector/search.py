"""
Multi-query cosine search over every stored record.
"""

import math
from typing import Any, List, Sequence
import numpy as np

from .queue import OperationQueue
from .similarity import max_similarity
from .types import SearchHit, VectorRecord
from ..core.config import (
    EMBED_DIM,
    SEARCH_DEFAULT_MIN_SCORE,
    SEARCH_DEFAULT_TOP_K,
    SEARCH_MAX_QUERIES,
    SEARCH_MAX_TOP_K,
)
from ..util.logging import logger


def _as_number_or_none(value):
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return None if math.isnan(number) else number


def clamp_top_k(top_k) -> int:
    """Clamp to [1, SEARCH_MAX_TOP_K]. Non-numeric or NaN values fall back to the default."""
    value = _as_number_or_none(top_k)
    if value is None:
        return SEARCH_DEFAULT_TOP_K
    return int(max(1, min(SEARCH_MAX_TOP_K, value)))


def clamp_min_score(min_score) -> float:
    """Clamp to [0, 1]. Non-numeric or NaN values fall back to the default."""
    value = _as_number_or_none(min_score)
    if value is None:
        return SEARCH_DEFAULT_MIN_SCORE
    return max(0.0, min(1.0, value))


def rank_records(records: List[VectorRecord], queries: List[np.ndarray], top_k: int, min_score: float) -> List[SearchHit]:
    """Score each record by its best cosine similarity to any query and keep the top_k.

    A record matching several queries appears once, with its highest score.
    Records scoring below min_score are excluded. Equal scores keep the
    records' insertion order.
    """
    if not records or not queries:
        return []

    dimension = queries[0].shape[0]
    usable = [record for record in records if len(record.embedding) == dimension]
    if not usable:
        return []

    scores = max_similarity(np.vstack([record.embedding for record in usable]), queries)

    candidates = [i for i in range(len(usable)) if scores[i] >= min_score]
    candidates.sort(key=lambda i: -scores[i])

    return [
        SearchHit(
            text=usable[i].text,
            published_at=usable[i].published_at,
            source=usable[i].source,
            score=float(scores[i]),
        )
        for i in candidates[:top_k]
    ]


def _first_queries(query_embeddings: Sequence[Any]) -> list:
    if query_embeddings is None:
        return []
    try:
        return list(query_embeddings)[:SEARCH_MAX_QUERIES]
    except TypeError:
        return []


class SearchEngine:
    """Runs rank_records against the store's current contents through the queue."""

    def __init__(self, queue: OperationQueue, dimension: int = EMBED_DIM):
        self._queue = queue
        self.dimension = dimension

    def prepare_queries(self, query_embeddings: Sequence[Any]) -> List[np.ndarray]:
        """Keep the first SEARCH_MAX_QUERIES queries, then drop any that are not length `dimension`."""
        queries = []
        for embedding in _first_queries(query_embeddings):
            if embedding is None:
                continue
            try:
                vector = np.asarray(embedding, dtype=np.float64)
            except (TypeError, ValueError):
                continue
            if vector.ndim == 1 and vector.shape[0] == self.dimension:
                queries.append(vector)
        return queries

    async def search(self, query_embeddings: Sequence[Any], top_k: int = SEARCH_DEFAULT_TOP_K,
                     min_score: float = SEARCH_DEFAULT_MIN_SCORE) -> List[SearchHit]:
        queries = self.prepare_queries(query_embeddings)
        top_k = clamp_top_k(top_k)
        min_score = clamp_min_score(min_score)
        if not queries:
            return []

        def task(store):
            records = store.get_all()
            hits = rank_records(records, queries, top_k, min_score)
            logger.log_search(len(queries), top_k, min_score, len(hits), len(records))
            return hits

        return await self._queue.run("search", task)
