"""
Logging for job bookings.

One process-wide StructuredLogger writes to stdout and to a daily file under
the log directory. It also keeps per-operation counters; the API reports them
on /api/health and the server logs a summary when it stops.
"""

import json
import logging
import sys
import threading
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


class OperationMetrics:
    """Attempt/success counts per method tag and failure counts per error code."""

    def __init__(self):
        self._lock = threading.Lock()
        self.attempts: Counter = Counter()
        self.successes: Counter = Counter()
        self.failures: Counter = Counter()

    def attempt(self, method: str) -> None:
        with self._lock:
            self.attempts[method] += 1

    def success(self, method: str) -> None:
        with self._lock:
            self.successes[method] += 1

    def failure(self, code: str) -> None:
        with self._lock:
            self.failures[code] += 1

    def snapshot(self) -> Dict:
        with self._lock:
            by_method = {
                method: {
                    "attempts": count,
                    "successes": self.successes[method],
                    "success_rate": round(self.successes[method] / count, 3),
                }
                for method, count in self.attempts.items()
            }
            return {
                "attempted": sum(self.attempts.values()),
                "successful": sum(self.successes.values()),
                "failed": sum(self.failures.values()),
                "errors_by_code": dict(self.failures),
                "by_method": by_method,
            }

    def summary_lines(self) -> List[str]:
        snap = self.snapshot()
        rate = round(snap["successful"] / snap["attempted"] * 100, 1) if snap["attempted"] else 0
        lines = [
            "=== Booking Operation Metrics ===",
            f"Operations: {snap['successful']}/{snap['attempted']} ({rate}% success)",
        ]
        for method, stats in snap["by_method"].items():
            lines.append(f"  {method}: {stats['successes']}/{stats['attempts']} ({stats['success_rate'] * 100:.1f}%)")
        for code, count in snap["errors_by_code"].items():
            lines.append(f"  {code}: {count}")
        return lines


class StructuredLogger:
    """Logger whose messages may carry keyword context, rendered as JSON."""

    def __init__(
        self,
        name: str = "jobbookings",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for the daily log file (default: logs/)
            enable_file: Write a log file
            enable_console: Write to stdout
        """
        console_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(console_level)
        self.logger.handlers.clear()
        self.metrics = OperationMetrics()

        if enable_console:
            self.logger.addHandler(_handler(logging.StreamHandler(sys.stdout), console_level, CONSOLE_FORMAT))

        if enable_file:
            log_dir = log_dir or Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"jobbookings_{datetime.now().strftime('%Y%m%d')}.log"
            # the file gets everything the logger passes
            self.logger.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT))

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    def record_operation_attempt(self, method: str):
        self.metrics.attempt(method)

    def record_operation_success(self, method: str):
        self.metrics.success(method)

    def record_operation_failure(self, method: str, error_code: str):
        self.metrics.failure(error_code)

    def get_metrics(self) -> Dict:
        """Point-in-time copy of the operation counters."""
        return self.metrics.snapshot()

    def log_metrics_summary(self):
        for line in self.metrics.summary_lines():
            self.info(line)


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "jobbookings", level: str = "INFO", **kwargs) -> StructuredLogger:
    """Return the process logger, creating it with these arguments on first call."""
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process logger so the next get_logger() builds a fresh one."""
    global _global_logger
    _global_logger = None
