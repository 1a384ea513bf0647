"""
Cosine similarity helpers.
"""

from typing import Sequence
import numpy as np


def cosine_similarity(a, b) -> float:
    """Cosine of the angle between a and b; 0.0 when either norm is zero."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector lengths differ: {a.shape[0]} != {b.shape[0]}")

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    # Zero rows stay zero so every similarity against them is 0
    safe = np.where(norms == 0, 1.0, norms)
    return matrix / safe


def max_similarity(records: np.ndarray, queries: Sequence[np.ndarray]) -> np.ndarray:
    """Best cosine score of each record row against any of the queries.

    Args:
        records: (N, D) matrix of stored embeddings
        queries: non-empty sequence of length-D query vectors

    Returns:
        Array of N float64 scores
    """
    if records.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)

    record_matrix = _normalize_rows(np.asarray(records, dtype=np.float64))
    query_matrix = _normalize_rows(np.vstack([np.asarray(q, dtype=np.float64) for q in queries]))

    scores = record_matrix @ query_matrix.T
    return scores.max(axis=1)
