"""
Record stores: keyed, capacity-bounded storage of VectorRecords.

Stores are not thread-safe. Only the OperationQueue that owns a store calls
into it, one operation at a time.
"""

from abc import ABC, abstractmethod
import json
import os
import sqlite3
from typing import Dict, List, Optional, Tuple
import numpy as np

from .types import VectorRecord
from ..core.config import VECTOR_CAPACITY, ensure_db_directory
from ..core.db import TABLE_NAME, connect, init_db, transaction
from ..core.errors import StorageInvalidatedError, StorageUnavailableError
from ..util.logging import logger

STATE_UNOPENED = "unopened"
STATE_OPEN = "open"
STATE_CLOSED = "closed"


class IRecordStore(ABC):
    """Abstract interface for record storage with oldest-first eviction."""

    def __init__(self, capacity: int = VECTOR_CAPACITY, dimension: Optional[int] = None):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.dimension = dimension
        self._state = STATE_UNOPENED

    @property
    def state(self) -> str:
        """unopened, open or closed."""
        return self._state

    def is_available(self) -> bool:
        """Whether the backing medium exists in this environment."""
        return True

    @abstractmethod
    def open(self) -> None:
        """Create the handle if there is none cached."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Drop the cached handle; the next operation reopens it."""
        pass

    def put(self, record: VectorRecord) -> None:
        """Upsert a single record by id."""
        self.put_many([record])

    @abstractmethod
    def put_many(self, records: List[VectorRecord]) -> None:
        """Upsert records by id. All or nothing."""
        pass

    @abstractmethod
    def get_all(self) -> List[VectorRecord]:
        """All records in insertion order."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def evict_to_capacity(self) -> int:
        """Delete the oldest records until count() <= capacity. Returns the number deleted."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every record."""
        pass

    def _check_dimensions(self, records: List[VectorRecord]) -> None:
        if self.dimension is None:
            return
        for record in records:
            if len(record.embedding) != self.dimension:
                raise ValueError(
                    f"Vector dimension {len(record.embedding)} does not match expected dimension {self.dimension}"
                )


class InMemoryRecordStore(IRecordStore):
    """Process-local record store. Records survive close(), not the process."""

    def __init__(self, capacity: int = VECTOR_CAPACITY, dimension: Optional[int] = None):
        super().__init__(capacity, dimension)
        self._records: Dict[str, Tuple[int, VectorRecord]] = {}  # id -> (seq, record)
        self._next_seq = 0

    def open(self) -> None:
        self._state = STATE_OPEN

    def close(self) -> None:
        if self._state == STATE_OPEN:
            self._state = STATE_CLOSED

    def put_many(self, records: List[VectorRecord]) -> None:
        self._check_dimensions(records)
        self.open()
        for record in records:
            # Re-inserting moves the id to the end of insertion order
            self._records.pop(record.id, None)
            self._records[record.id] = (self._next_seq, record)
            self._next_seq += 1

    def get_all(self) -> List[VectorRecord]:
        self.open()
        return [record for _, record in self._records.values()]

    def count(self) -> int:
        self.open()
        return len(self._records)

    def evict_to_capacity(self) -> int:
        self.open()
        excess = len(self._records) - self.capacity
        if excess <= 0:
            return 0

        oldest = sorted(self._records.values(), key=lambda entry: (entry[1].ingested_at, entry[0]))
        for _, record in oldest[:excess]:
            del self._records[record.id]
        return excess

    def clear(self) -> None:
        self.open()
        self._records.clear()


class SQLiteRecordStore(IRecordStore):
    """SQLite-backed record store.

    The connection is opened lazily and cached. If the database file is
    deleted or replaced while a connection is cached, the next operation drops
    the connection and raises StorageInvalidatedError; the one after that opens
    a fresh database.
    """

    def __init__(self, db_path: str, capacity: int = VECTOR_CAPACITY, dimension: Optional[int] = None):
        """
        Initialize the SQLite record store.

        Args:
            db_path: Database file, or ":memory:" for a private in-memory database
            capacity: Maximum number of records kept after eviction
            dimension: Required embedding length; None skips the check
        """
        super().__init__(capacity, dimension)
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._file_id: Optional[Tuple[int, int]] = None

    @property
    def _in_memory(self) -> bool:
        return self.db_path == ":memory:"

    def is_available(self) -> bool:
        if self._in_memory:
            return True
        try:
            ensure_db_directory(self.db_path)
        except OSError as e:
            logger.debug(f"Vector database directory unavailable for {self.db_path}: {e}")
            return False
        return True

    def _stat_file(self) -> Optional[Tuple[int, int]]:
        try:
            st = os.stat(self.db_path)
        except FileNotFoundError:
            return None
        return (st.st_dev, st.st_ino)

    def _is_stale(self) -> bool:
        if self._in_memory:
            return False
        current = self._stat_file()
        return current is None or current != self._file_id

    def open(self) -> None:
        if self._conn is not None:
            return
        if not self.is_available():
            raise StorageUnavailableError(f"Vector database unavailable at {self.db_path}")

        conn = connect(self.db_path)
        try:
            init_db(conn)
        except sqlite3.Error:
            conn.close()
            raise

        self._conn = conn
        self._file_id = None if self._in_memory else self._stat_file()
        self._state = STATE_OPEN
        logger.log_operation("store.open", "success", {"db_path": self.db_path})

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        self._file_id = None
        self._state = STATE_CLOSED
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Error closing vector database {self.db_path}: {e}")
        logger.log_operation("store.close", "success", {"db_path": self.db_path})

    def _connection(self) -> sqlite3.Connection:
        if self._conn is not None and self._is_stale():
            self.close()
            raise StorageInvalidatedError(f"Vector database at {self.db_path} was removed or replaced")
        self.open()
        return self._conn

    @staticmethod
    def _to_row(record: VectorRecord) -> tuple:
        embedding = np.asarray(record.embedding, dtype=np.float32)
        tags = json.dumps(record.tags) if record.tags else None
        return (
            record.id,
            record.text,
            embedding.tobytes(),
            int(record.published_at),
            int(record.ingested_at),
            record.source,
            record.url or "",
            tags,
        )

    @staticmethod
    def _from_row(row: tuple) -> VectorRecord:
        record_id, text, blob, published_at, ingested_at, source, url, tags = row
        return VectorRecord(
            id=record_id,
            text=text,
            embedding=np.frombuffer(blob, dtype=np.float32),
            published_at=published_at,
            ingested_at=ingested_at,
            source=source,
            url=url,
            tags=json.loads(tags) if tags else None,
        )

    def put_many(self, records: List[VectorRecord]) -> None:
        self._check_dimensions(records)
        conn = self._connection()
        rows = [self._to_row(record) for record in records]

        with transaction(conn) as cursor:
            # REPLACE deletes the old row for the id, so the new row gets a fresh seq
            cursor.executemany(
                f"""INSERT OR REPLACE INTO {TABLE_NAME}
                    (id, text, embedding, published_at, ingested_at, source, url, tags)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                rows,
            )

    def get_all(self) -> List[VectorRecord]:
        conn = self._connection()
        cursor = conn.execute(
            f"""SELECT id, text, embedding, published_at, ingested_at, source, url, tags
                FROM {TABLE_NAME} ORDER BY seq ASC"""
        )
        return [self._from_row(row) for row in cursor.fetchall()]

    def count(self) -> int:
        conn = self._connection()
        return conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]

    def evict_to_capacity(self) -> int:
        conn = self._connection()
        total = conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
        excess = total - self.capacity
        if excess <= 0:
            return 0

        with transaction(conn) as cursor:
            cursor.execute(
                f"""DELETE FROM {TABLE_NAME} WHERE seq IN (
                        SELECT seq FROM {TABLE_NAME} ORDER BY ingested_at ASC, seq ASC LIMIT ?
                    )""",
                (excess,),
            )
        return excess

    def clear(self) -> None:
        conn = self._connection()
        with transaction(conn) as cursor:
            cursor.execute(f"DELETE FROM {TABLE_NAME}")
