"""
Exceptions raised inside the vector index. None of them escape VectorIndex.
"""


class VectorStoreError(Exception):
    """Base exception for vector store operations."""
    pass


class StorageUnavailableError(VectorStoreError):
    """The persistent medium is not available in this environment."""
    pass


class StorageInvalidatedError(VectorStoreError):
    """The cached storage handle went stale between operations."""
    pass
