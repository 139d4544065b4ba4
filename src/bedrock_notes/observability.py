"""Logging and operation metrics for the notes engine.

``configure_logging`` sends the ``bedrock_notes`` logger to a rotating file
under ``~/.bedrock/logs`` (plus stderr). ``timed_operation`` wraps engine
calls such as ``add_link`` or ``search_by_text``: it logs start and end
under a short correlation id and feeds the duration into ``metrics``, the
process-wide ``MetricsCollector`` whose summary the server logs on exit.
"""
import logging
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".bedrock" / "logs"
LOG_FILE_NAME = "bedrock.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _has_handler_for(package_logger: logging.Logger, log_file: Path) -> bool:
    target = log_file.resolve()
    return any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename).resolve() == target
        for h in package_logger.handlers
    )


def _has_console_handler(package_logger: logging.Logger) -> bool:
    return any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        for h in package_logger.handlers
    )


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Attach rotating file (and console) handlers to ``bedrock_notes``.

    Safe to call more than once; a handler for the same file or a second
    console handler is never added.

    Args:
        log_dir: Where ``bedrock.log`` goes. Defaults to ~/.bedrock/logs/
        level: Level for the package logger and its handlers.
        max_bytes: Rotate once the file reaches this size.
        backup_count: Rotated files to keep.
        console: Also log to stderr.

    Returns:
        The log directory.
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    package_logger = logging.getLogger("bedrock_notes")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if not _has_handler_for(package_logger, log_file):
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if console and not _has_console_handler(package_logger):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    package_logger.info(f"Logging to {log_file} (rotating at {max_bytes} bytes, keeping {backup_count})")
    return log_path


def _sanitize_error_message(message: Optional[str], max_length: int = 200) -> Optional[str]:
    """Shorten an error for the metrics table.

    Note paths usually sit under the home directory, which is shown as
    ``~``. Line breaks become spaces and long messages end in ``...``.
    """
    if message is None:
        return None
    cleaned = message.replace(str(Path.home()), "~").replace("\r", " ").replace("\n", " ")
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned


@dataclass
class OperationMetrics:
    """Running totals for one operation name."""
    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def snapshot(self) -> Dict[str, Any]:
        calls = self.count or 1
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / calls if self.count else 0,
            "avg_duration_ms": round(self.total_duration_ms / calls, 2),
            "min_duration_ms": round(self.min_duration_ms if self.count else 0, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
        }


class MetricsCollector:
    """Per-operation counts and timings, shared by every thread."""

    def __init__(self) -> None:
        self._metrics: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self._lock = Lock()
        self._start_time = datetime.now(timezone.utc)

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            entry = self._metrics[operation]
            entry.count += 1
            entry.total_duration_ms += duration_ms
            entry.min_duration_ms = min(entry.min_duration_ms, duration_ms)
            entry.max_duration_ms = max(entry.max_duration_ms, duration_ms)
            if success:
                entry.success_count += 1
            else:
                entry.error_count += 1
                entry.last_error = _sanitize_error_message(error)
                entry.last_error_time = datetime.now(timezone.utc)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every operation, keyed by name."""
        with self._lock:
            return {name: entry.snapshot() for name, entry in self._metrics.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals across operations; logged when the server stops."""
        with self._lock:
            total = sum(m.count for m in self._metrics.values())
            succeeded = sum(m.success_count for m in self._metrics.values())
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._start_time).total_seconds(),
                "total_operations": total,
                "total_success": succeeded,
                "total_errors": sum(m.error_count for m in self._metrics.values()),
                "overall_success_rate": succeeded / total if total else 1.0,
                "operations_tracked": list(self._metrics),
            }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._start_time = datetime.now(timezone.utc)


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Time an engine operation and record it in ``metrics``.

    The yielded dict carries the ``correlation_id``; callers may add result
    fields (``op["result_count"] = 3``) that are logged on exit. Exceptions
    are recorded as failures and re-raised.
    """
    correlation_id = uuid.uuid4().hex[:8]
    info: Dict[str, Any] = {"correlation_id": correlation_id}
    details = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] {operation} started ({details})")

    started = time.perf_counter()
    error_msg = None
    try:
        yield info
    except Exception as e:
        error_msg = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, duration_ms, error_msg is None, error_msg)

        outcome = "ok" if error_msg is None else f"failed: {error_msg}"
        extras = ", ".join(f"{k}={v}" for k, v in info.items() if k != "correlation_id")
        logger.debug(
            f"[{correlation_id}] {operation} {outcome} in {duration_ms:.2f}ms {extras}".rstrip()
        )
