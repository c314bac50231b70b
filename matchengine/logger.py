"""
Structured logging system for the match engine.

Provides centralized logging with console and file outputs, plus metrics
tracking for monitoring scoring throughput and queue health.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for computations, cache hits and queue processing.
    """

    def __init__(
        self,
        name: str = "matchengine",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self.metrics = {
            "matches_computed": 0,
            "cache_hits": 0,
            "rows_invalidated": 0,
            "queue_processed": 0,
            "queue_failed": 0,
            "signals_defaulted": {},
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"matchengine_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_computation(self, defaulted_signals=()):
        """Record a fresh match computation and any defaulted signals."""
        self.metrics["matches_computed"] += 1
        for signal in defaulted_signals:
            counts = self.metrics["signals_defaulted"]
            counts[signal] = counts.get(signal, 0) + 1

    def record_cache_hit(self):
        self.metrics["cache_hits"] += 1

    def record_invalidation(self, rows: int):
        self.metrics["rows_invalidated"] += rows

    def record_queue_success(self):
        self.metrics["queue_processed"] += 1

    def record_queue_failure(self, error_type: str):
        """Record a queue item that failed and stays queued."""
        self.metrics["queue_failed"] += 1
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics, with the cache hit rate derived."""
        metrics_copy = dict(self.metrics)
        lookups = metrics_copy["cache_hits"] + metrics_copy["matches_computed"]
        metrics_copy["cache_hit_rate"] = (
            round(metrics_copy["cache_hits"] / lookups, 3) if lookups else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Match Engine Metrics ===")
        self.info(f"Computed: {metrics['matches_computed']} (cache hit rate {metrics['cache_hit_rate'] * 100:.1f}%)")
        self.info(f"Invalidated rows: {metrics['rows_invalidated']}")
        self.info(f"Queue: {metrics['queue_processed']} processed, {metrics['queue_failed']} failed")

        if metrics["signals_defaulted"]:
            self.info("Defaulted signals:")
            for signal, count in metrics["signals_defaulted"].items():
                self.info(f"  {signal}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "matchengine",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
