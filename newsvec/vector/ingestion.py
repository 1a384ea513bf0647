"""
Ingestion pipeline: items plus precomputed embeddings into stored records.
"""

import dataclasses
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple
import numpy as np
from pydantic import ValidationError

from .queue import OperationQueue
from .sanitize import make_record_id, sanitize_text
from .schemas import coerce_item
from .store import IRecordStore
from .types import IngestReport, VectorRecord
from ..core.config import EMBED_DIM
from ..util.logging import logger


def _now_ms() -> int:
    return int(time.time() * 1000)


class IngestionPipeline:
    """Validates and deduplicates items, then writes them through the queue.

    Items are dropped without error when their text sanitizes to nothing, when
    they fail validation, or when their paired embedding is missing or not
    exactly `dimension` long. Dropped items are counted in the IngestReport.
    """

    def __init__(self, queue: OperationQueue, dimension: int = EMBED_DIM,
                 clock: Optional[Callable[[], int]] = None):
        self._queue = queue
        self.dimension = dimension
        self._clock = clock or _now_ms

    def _as_vector(self, embedding: Any) -> Optional[np.ndarray]:
        if embedding is None:
            return None
        try:
            vector = np.asarray(embedding, dtype=np.float32)
        except (TypeError, ValueError):
            return None
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            return None
        return vector

    def prepare(self, items: Sequence[Any], embeddings: Optional[Sequence[Any]]) -> Tuple[List[VectorRecord], IngestReport]:
        """Build records for the items that survive validation.

        embeddings[i] pairs with items[i]; a shorter embeddings list leaves the
        trailing items without a vector. ingested_at is stamped later, when the
        write runs.
        """
        embeddings = embeddings if embeddings is not None else []
        report = IngestReport(requested=len(items))
        records = []

        for i, raw in enumerate(items):
            try:
                item = coerce_item(raw)
            except ValidationError as e:
                report.dropped_invalid += 1
                logger.warning(f"Dropping malformed ingest item at position {i}: {e.error_count()} validation error(s)")
                continue

            clean = sanitize_text(item.text)
            if not clean:
                report.dropped_empty += 1
                continue

            vector = self._as_vector(embeddings[i] if i < len(embeddings) else None)
            if vector is None:
                report.dropped_invalid += 1
                continue

            records.append(VectorRecord(
                id=make_record_id(item.source, item.url, item.published_at, clean),
                text=clean,
                embedding=vector,
                published_at=item.published_at,
                ingested_at=0,
                source=item.source,
                url=item.url,
                tags=list(item.tags) if item.tags else None,
            ))

        report.stored = len(records)
        return records, report

    def _write(self, store: IRecordStore, records: List[VectorRecord]) -> int:
        now = self._clock()
        stamped = [dataclasses.replace(record, ingested_at=now) for record in records]
        store.put_many(stamped)
        evicted = store.evict_to_capacity()
        if evicted:
            logger.log_operation("vector.evict", "success", {"evicted": evicted, "capacity": store.capacity})
        return evicted

    async def ingest(self, items: Sequence[Any], embeddings: Optional[Sequence[Any]]) -> IngestReport:
        """Prepare and store a batch. Storage errors propagate to the caller."""
        records, report = self.prepare(items, embeddings)
        if records:
            await self._queue.run("ingest", lambda store: self._write(store, records))

        logger.log_ingest(report.requested, report.stored, report.dropped_empty, report.dropped_invalid)
        return report
