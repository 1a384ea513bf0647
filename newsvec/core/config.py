"""
Vector index configuration.

Values come from the environment (optionally via a .env file). Switches that
tests flip at runtime are exposed as functions so they are re-read on call.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Storage configuration
VECTOR_STORE_ENABLED = os.getenv("VECTOR_STORE_ENABLED", "true").lower() == "true"
VECTOR_STORE_PROVIDER = os.getenv("VECTOR_STORE_PROVIDER", "sqlite")  # sqlite|memory
VECTOR_DB_PATH = os.getenv("VECTOR_DB_PATH", "./data/vectors.db")
VECTOR_CAPACITY = int(os.getenv("VECTOR_CAPACITY", "5000"))

# Embedding configuration
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "sentence-transformers/all-MiniLM-L6-v2")

# Fixed limits
TEXT_MAX_CHARS = 200
SEARCH_MAX_QUERIES = 5
SEARCH_MAX_TOP_K = 20
SEARCH_DEFAULT_TOP_K = 5
SEARCH_DEFAULT_MIN_SCORE = 0.3

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Version string
VERSION = "0.1.0"


def is_vector_store_enabled():
    """Check if the persistent vector store is enabled."""
    return os.getenv("VECTOR_STORE_ENABLED", "true").lower() == "true"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_db_path() -> str:
    return os.getenv("VECTOR_DB_PATH", VECTOR_DB_PATH)


def get_capacity() -> int:
    return int(os.getenv("VECTOR_CAPACITY", str(VECTOR_CAPACITY)))


def get_embed_dim() -> int:
    return int(os.getenv("EMBED_DIM", str(EMBED_DIM)))


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists. Raises OSError when it cannot be created."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def get_record_store():
    """Get configured record store implementation. Returns None if the store is disabled."""
    if not is_vector_store_enabled():
        return None

    provider = os.getenv("VECTOR_STORE_PROVIDER", VECTOR_STORE_PROVIDER)
    if provider == "memory":
        from newsvec.vector.store import InMemoryRecordStore
        return InMemoryRecordStore(capacity=get_capacity())

    from newsvec.vector.store import SQLiteRecordStore
    return SQLiteRecordStore(get_db_path(), capacity=get_capacity())


def get_embedding_provider():
    """Get configured embedding provider implementation. Returns None if the store is disabled."""
    if not is_vector_store_enabled():
        return None

    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)
    if provider == "sentence_transformers":
        from newsvec.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME))

    from newsvec.vector.embeddings import DeterministicHashEmbedding
    return DeterministicHashEmbedding(dimension=get_embed_dim())


def validate_config():
    """Validate vector index configuration and return any issues."""
    issues = []

    if os.getenv("VECTOR_STORE_PROVIDER", VECTOR_STORE_PROVIDER) not in ["sqlite", "memory"]:
        issues.append(f"Invalid VECTOR_STORE_PROVIDER: {os.getenv('VECTOR_STORE_PROVIDER')}")

    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) not in ["hash", "sentence_transformers"]:
        issues.append(f"Invalid EMBED_PROVIDER: {os.getenv('EMBED_PROVIDER')}")

    if get_capacity() < 1:
        issues.append("VECTOR_CAPACITY must be >= 1")

    if get_embed_dim() < 1:
        issues.append("EMBED_DIM must be >= 1")

    return issues
