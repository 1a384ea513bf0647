"""
Serialized access to a record store.

Every store-touching operation is submitted to one single-worker executor, so
operations run one at a time in submission order. A failing operation only
fails its own caller; the worker moves on to the next task.
"""

import asyncio
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, TypeVar

from .store import IRecordStore
from ..util.logging import logger

T = TypeVar("T")


class OperationQueue:
    """FIFO task queue that owns a record store.

    Callers never see the store directly: each task is a callable that
    receives it. There is no priority and no cancellation; a caller that stops
    waiting does not remove its task.
    """

    def __init__(self, store: IRecordStore, name: str = "vector-store"):
        self._store = store
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._stats = {"submitted": 0, "completed": 0, "failed": 0}
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def _execute(self, task_name: str, fn: Callable[[IRecordStore], T]) -> T:
        start_time = time.time()
        try:
            result = fn(self._store)
        except Exception as e:
            self._count("failed")
            logger.log_queue_task(task_name, start_time, time.time(), status="failed",
                                  details={"error": f"{type(e).__name__}: {e}"})
            # Drop the handle so the next task starts from a fresh one
            self._store.close()
            raise
        self._count("completed")
        logger.log_queue_task(task_name, start_time, time.time())
        return result

    def submit(self, task_name: str, fn: Callable[[IRecordStore], T]) -> "Future[T]":
        """Append a task and return its concurrent future."""
        self._count("submitted")
        return self._executor.submit(self._execute, task_name, fn)

    async def run(self, task_name: str, fn: Callable[[IRecordStore], T]) -> T:
        """Append a task and wait for its result.

        The wait is shielded: cancelling the awaiting coroutine leaves the
        task queued and it still runs to completion.
        """
        future = self.submit(task_name, fn)
        return await asyncio.shield(asyncio.wrap_future(future))

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks, optionally waiting for queued ones, then close the store."""
        self._executor.shutdown(wait=wait)
        if wait:
            self._store.close()

    def __repr__(self) -> str:
        return f"OperationQueue(name={self.name!r}, stats={self.stats})"
