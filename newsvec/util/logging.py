"""
Structured logging for vector index operations.
"""

import logging
from typing import Any, Dict, Optional


def _truncate(text: str, limit: int = 50) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for ingestion, search and storage operations."""

    def __init__(self, name: str = "newsvec"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_debug(self, enabled: bool) -> None:
        """Switch between DEBUG and INFO verbosity."""
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None,
                      level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_ingest(self, requested: int, stored: int, dropped_empty: int, dropped_invalid: int, status: str = "success"):
        """Log the outcome of an ingestion batch."""
        details = {
            "requested": requested,
            "stored": stored,
            "dropped_empty": dropped_empty,
            "dropped_invalid": dropped_invalid,
        }
        self.log_operation("vector.ingest", status, details)

    def log_search(self, query_count: int, top_k: int, min_score: float, hits: int, scanned: int):
        """Log a completed search."""
        details = {
            "queries": query_count,
            "top_k": top_k,
            "min_score": min_score,
            "hits": hits,
            "scanned": scanned,
        }
        self.log_operation("vector.search", "success", details, level=logging.DEBUG)

    def log_queue_task(self, task_name: str, start_time: float, end_time: float, status: str = "success",
                       details: Optional[Dict[str, Any]] = None):
        """Log queued task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)

        level = logging.DEBUG if status == "success" else logging.WARNING
        self.log_operation(f"queue.{task_name}", status, log_details, level=level)

    def log_storage_failure(self, operation: str, error: BaseException, text: str = None):
        """Log a storage error that was recovered by returning an empty result."""
        details = {"error_type": type(error).__name__, "error": _truncate(str(error), 200)}
        if text is not None:
            details["text"] = _truncate(text)

        self.log_operation(f"storage.{operation}", "failed", details, level=logging.ERROR)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
