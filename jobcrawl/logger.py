"""
Structured logging system for jobcrawl.

Provides centralized logging with console and file outputs, plus
per-source crawl metrics so an operator can see which boards are
failing or rate-limiting a run.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks fetch and persistence outcomes per source.
    """

    def __init__(
        self,
        name: str = "jobcrawl",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
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
            "discovery_calls": 0,
            "fetches_attempted": 0,
            "fetches_successful": 0,
            "fetches_failed": 0,
            "outcomes": {},
            "errors_by_type": {},
            "source_stats": {},
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

            log_file = log_dir / f"jobcrawl_{datetime.now().strftime('%Y%m%d')}.log"
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

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_discovery_call(self):
        """Increment discovery (search API) call counter."""
        self.metrics["discovery_calls"] += 1

    def _source(self, source: str) -> dict:
        stats = self.metrics["source_stats"]
        if source not in stats:
            stats[source] = {"attempts": 0, "successes": 0, "rate_limited": 0}
        return stats[source]

    def record_fetch_attempt(self, source: str):
        """Record a page fetch for a source."""
        self.metrics["fetches_attempted"] += 1
        self._source(source)["attempts"] += 1

    def record_fetch_success(self, source: str):
        """Record a 2xx page fetch."""
        self.metrics["fetches_successful"] += 1
        self._source(source)["successes"] += 1

    def record_fetch_failure(self, source: str, error_type: str):
        """Record a failed fetch, keyed by error type."""
        self.metrics["fetches_failed"] += 1
        if error_type == "RateLimited":
            self._source(source)["rate_limited"] += 1

        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def record_outcome(self, outcome: str):
        """Count a terminal per-URL outcome (created, closed, skipped...)."""
        outcomes = self.metrics["outcomes"]
        outcomes[outcome] = outcomes.get(outcome, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        for source, stats in metrics_copy["source_stats"].items():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(
                    stats["successes"] / stats["attempts"], 3
                )

        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total_attempts = metrics["fetches_attempted"]
        total_successes = metrics["fetches_successful"]
        overall_rate = 0
        if total_attempts > 0:
            overall_rate = round(total_successes / total_attempts * 100, 1)

        self.info("=== Crawl Session Metrics ===")
        self.info(f"Discovery Calls: {metrics['discovery_calls']}")
        self.info(f"Fetches: {total_successes}/{total_attempts} ({overall_rate}% success)")

        if metrics["source_stats"]:
            self.info("Source Success Rates:")
            for source, stats in metrics["source_stats"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(
                    f"  {source}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%), "
                    f"rate-limited {stats['rate_limited']}"
                )

        if metrics["outcomes"]:
            self.info("Outcomes:")
            for outcome, count in metrics["outcomes"].items():
                self.info(f"  {outcome}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobcrawl",
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
