"""
SQLite access for the vector store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

TABLE_NAME = "embeddings"


def connect(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection for the store.

    The connection is opened by the caller's thread but only ever used by the
    single queue worker, so the same-thread check is disabled.
    """
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Cursor, None, None]:
    """Run statements in one transaction, rolling back on any error."""
    cursor = conn.cursor()
    try:
        yield cursor
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        cursor.close()


def init_db(conn: sqlite3.Connection):
    """Initialize the database with required tables."""
    with transaction(conn) as cursor:
        # seq is the insertion order; an upsert replaces the row and takes a new seq
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                text TEXT NOT NULL,
                embedding BLOB NOT NULL,
                published_at INTEGER NOT NULL,
                ingested_at INTEGER NOT NULL,
                source TEXT NOT NULL,
                url TEXT NOT NULL DEFAULT '',
                tags TEXT
            )
        ''')

        cursor.execute(
            f'CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_ingested_at ON {TABLE_NAME}(ingested_at, seq)'
        )
