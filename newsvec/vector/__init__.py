"""
Vector index: record stores, serialized access queue, ingestion and search.
"""

# Package initialization for vector module
from .index import VectorIndex
from .store import IRecordStore, InMemoryRecordStore, SQLiteRecordStore
from .queue import OperationQueue
from .ingestion import IngestionPipeline
from .search import SearchEngine, rank_records
from .types import VectorRecord, SearchHit, IngestReport
from .schemas import IngestItem
from .sanitize import sanitize_text, make_record_id
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding

__all__ = [
    'VectorIndex',
    'IRecordStore',
    'InMemoryRecordStore',
    'SQLiteRecordStore',
    'OperationQueue',
    'IngestionPipeline',
    'SearchEngine',
    'rank_records',
    'VectorRecord',
    'SearchHit',
    'IngestReport',
    'IngestItem',
    'sanitize_text',
    'make_record_id',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding'
]
