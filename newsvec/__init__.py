"""
newsvec - local semantic vector index for news headlines.
"""

from .core.config import VERSION as __version__
from .vector import IngestItem, IngestReport, SearchHit, VectorIndex, VectorRecord

__all__ = [
    'VectorIndex',
    'VectorRecord',
    'SearchHit',
    'IngestItem',
    'IngestReport',
    '__version__'
]
