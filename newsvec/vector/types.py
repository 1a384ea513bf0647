"""
Record and result types for the vector index.
"""

from typing import Any, Dict, List, Optional
import numpy as np
from dataclasses import dataclass


@dataclass
class VectorRecord:
    """A stored embedding with its passthrough metadata."""

    id: str
    """Deterministic identity from (source, url, published_at, text)"""

    text: str
    """Sanitized text that was embedded"""

    embedding: np.ndarray
    """float32 vector of the store's dimension"""

    published_at: int
    """Source publish time, epoch milliseconds"""

    ingested_at: int
    """Insertion time, epoch milliseconds; eviction order key"""

    source: str

    url: str = ""

    tags: Optional[List[str]] = None
    """None when the item carried no tags"""


@dataclass
class SearchHit:
    """A ranked search result. Embedding and identity are not exposed."""

    text: str
    published_at: int
    source: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "published_at": self.published_at,
            "source": self.source,
            "score": self.score,
        }


@dataclass
class IngestReport:
    """Outcome of one ingestion batch."""

    requested: int = 0
    stored: int = 0
    dropped_empty: int = 0
    """Items whose text sanitized to an empty string"""

    dropped_invalid: int = 0
    """Malformed items and items whose embedding was missing or had the wrong length"""
