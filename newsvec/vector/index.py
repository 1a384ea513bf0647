"""
VectorIndex: the public surface of the local semantic vector index.

Every operation is asynchronous and serialized through one OperationQueue per
index. Storage failures never reach the caller: the failing operation
returns its empty value (0 or []) and the next operation reopens storage.
"""

import asyncio
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .embeddings import IEmbeddingProvider
from .ingestion import IngestionPipeline
from .queue import OperationQueue
from .sanitize import sanitize_text
from .search import SearchEngine
from .store import STATE_UNOPENED, IRecordStore
from .types import IngestReport, SearchHit
from ..core.config import (
    SEARCH_DEFAULT_MIN_SCORE,
    SEARCH_DEFAULT_TOP_K,
    SEARCH_MAX_QUERIES,
    debug_enabled,
    get_embed_dim,
    get_embedding_provider,
    get_record_store,
)
from ..core.errors import StorageUnavailableError, VectorStoreError
from ..util.logging import logger

_RECOVERABLE = (VectorStoreError, sqlite3.Error, OSError)


def _item_text(item: Any) -> str:
    if isinstance(item, dict):
        return sanitize_text(item.get("text"))
    return sanitize_text(getattr(item, "text", None))


class VectorIndex:
    """Capacity-bounded store of text embeddings with multi-query search.

    Passing store=None builds a degraded index: every operation is a no-op
    returning 0 or [].
    """

    def __init__(self, store: Optional[IRecordStore], dimension: Optional[int] = None,
                 embedding_provider: Optional[IEmbeddingProvider] = None,
                 clock: Optional[Callable[[], int]] = None, name: str = "vector-store"):
        self.dimension = dimension or get_embed_dim()
        self._store = store
        self._embedding_provider = embedding_provider
        self._unavailable_warned = False

        if store is None:
            self._queue = None
            self.ingestion = None
            self.search_engine = None
            logger.warning("Vector store disabled; index running in degraded mode")
            return

        if store.dimension is None:
            store.dimension = self.dimension
        self._queue = OperationQueue(store, name=name)
        self.ingestion = IngestionPipeline(self._queue, self.dimension, clock=clock)
        self.search_engine = SearchEngine(self._queue, self.dimension)

    @classmethod
    def from_config(cls) -> "VectorIndex":
        """Build an index from environment configuration."""
        logger.set_debug(debug_enabled())
        return cls(get_record_store(), embedding_provider=get_embedding_provider())

    @property
    def degraded(self) -> bool:
        """True when there is no usable backing medium."""
        return self._store is None or not self._store.is_available()

    @property
    def state(self) -> str:
        return self._store.state if self._store is not None else STATE_UNOPENED

    def _recover(self, operation: str, error: BaseException) -> None:
        if isinstance(error, StorageUnavailableError):
            if not self._unavailable_warned:
                logger.warning(f"Vector storage unavailable, {operation} degraded to a no-op: {error}")
                self._unavailable_warned = True
            return
        logger.log_storage_failure(operation, error)

    async def ingest_report(self, items: Sequence[Any], embeddings: Optional[Sequence[Any]]) -> IngestReport:
        """Ingest and return the structured outcome. stored is 0 if the write failed."""
        if self.ingestion is None:
            return IngestReport(requested=len(items), stored=0)
        try:
            return await self.ingestion.ingest(items, embeddings)
        except _RECOVERABLE as e:
            self._recover("ingest", e)
            return IngestReport(requested=len(items), stored=0)

    async def ingest(self, items: Sequence[Any], embeddings: Optional[Sequence[Any]]) -> int:
        """Store items paired 1:1 with their embeddings.

        Args:
            items: dicts or IngestItems with text, published_at, source, url, tags
            embeddings: one vector per item, same order

        Returns:
            Number of items stored; dropped items are not counted
        """
        report = await self.ingest_report(items, embeddings)
        return report.stored

    async def search(self, query_embeddings: Sequence[Any], top_k: int = SEARCH_DEFAULT_TOP_K,
                     min_score: float = SEARCH_DEFAULT_MIN_SCORE) -> List[SearchHit]:
        """Rank stored records against up to five query embeddings."""
        if self.search_engine is None:
            return []
        try:
            return await self.search_engine.search(query_embeddings, top_k, min_score)
        except _RECOVERABLE as e:
            self._recover("search", e)
            return []

    async def count(self) -> int:
        if self._queue is None:
            return 0
        try:
            return await self._queue.run("count", lambda store: store.count())
        except _RECOVERABLE as e:
            self._recover("count", e)
            return 0

    async def reset(self) -> None:
        """Delete every record and close the handle; the next operation reopens it."""
        if self._queue is None:
            return

        def task(store):
            store.clear()
            store.close()

        try:
            await self._queue.run("reset", task)
        except _RECOVERABLE as e:
            self._recover("reset", e)

    async def close(self) -> None:
        """Drop the cached handle without touching the records."""
        if self._queue is None:
            return
        await self._queue.run("close", lambda store: store.close())

    async def _embed(self, texts: List[str]) -> Optional[List[Any]]:
        try:
            return await asyncio.to_thread(self._embedding_provider.embed_texts, texts)
        except Exception as e:
            logger.error(f"Embedding provider failed for {len(texts)} text(s): {e}")
            return None

    async def ingest_texts(self, items: Sequence[Any]) -> int:
        """Embed the items' sanitized texts with the configured provider, then ingest them."""
        if self._queue is None or self._embedding_provider is None or not items:
            return 0

        embeddings = await self._embed([_item_text(item) for item in items])
        if embeddings is None:
            return 0
        return await self.ingest(items, embeddings)

    async def search_texts(self, queries: Sequence[str], top_k: int = SEARCH_DEFAULT_TOP_K,
                           min_score: float = SEARCH_DEFAULT_MIN_SCORE) -> List[SearchHit]:
        """Embed up to five query strings and search with them."""
        if self._queue is None or self._embedding_provider is None:
            return []

        queries = [] if queries is None else list(queries)
        texts = [sanitize_text(query) for query in queries[:SEARCH_MAX_QUERIES]]
        texts = [text for text in texts if text]
        if not texts:
            return []

        embeddings = await self._embed(texts)
        if embeddings is None:
            return []
        return await self.search(embeddings, top_k, min_score)

    async def health(self) -> Dict[str, Any]:
        """Return index health: status, size, capacity and handle state."""
        info = {
            "status": "healthy",
            "available": not self.degraded,
            "size": 0,
            "capacity": self._store.capacity if self._store is not None else 0,
            "dimension": self.dimension,
            "state": self.state,
            "last_checked": datetime.now().isoformat(),
        }
        if self._queue is None or not info["available"]:
            info["status"] = "degraded"
            return info

        try:
            info["size"] = await self._queue.run("health", lambda store: store.count())
        except _RECOVERABLE as e:
            info["status"] = "unhealthy"
            info["error"] = str(e)
        info["state"] = self.state
        return info

    def shutdown(self, wait: bool = True) -> None:
        """Stop the queue worker and close storage. The index cannot be used afterwards."""
        if self._queue is not None:
            self._queue.shutdown(wait=wait)

    async def __aenter__(self) -> "VectorIndex":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await asyncio.to_thread(self.shutdown)
