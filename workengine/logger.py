"""
Structured logging for workengine.

Provides centralized logging with console and file outputs plus counters
for monitoring how approvals get routed: which rule assigns them, how often
nobody is found, and which relationship lookups fail.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import parse_bool


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks assignment metrics across resolutions.
    """

    def __init__(
        self,
        name: str = "workengine",
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
            "lookup_calls": 0,
            "resolutions_attempted": 0,
            "resolutions_assigned": 0,
            "resolutions_unassigned": 0,
            "rule_hits": {},
            "lookup_failures": {},
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"workengine_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
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
            message = f"{message} | Context: {json.dumps(context, default=str, sort_keys=True)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_lookup_call(self):
        """Increment relationship lookup counter."""
        self.metrics["lookup_calls"] += 1

    def record_resolution_attempt(self):
        self.metrics["resolutions_attempted"] += 1

    def record_rule_hit(self, rule: str):
        """Record that ``rule`` produced the assignee."""
        self.metrics["resolutions_assigned"] += 1
        hits = self.metrics["rule_hits"]
        hits[rule] = hits.get(rule, 0) + 1

    def record_unassigned(self):
        self.metrics["resolutions_unassigned"] += 1

    def record_lookup_failure(self, rule: str, error_type: str):
        """Record a rule whose lookups failed."""
        failures = self.metrics["lookup_failures"]
        failures[rule] = failures.get(rule, 0) + 1

        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics with the assignment rate filled in."""
        metrics = dict(self.metrics)
        metrics["rule_hits"] = dict(self.metrics["rule_hits"])
        metrics["lookup_failures"] = dict(self.metrics["lookup_failures"])
        metrics["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = metrics["resolutions_attempted"]
        metrics["assignment_rate"] = (
            round(metrics["resolutions_assigned"] / attempted, 3) if attempted else 0.0
        )
        return metrics

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Assignment Metrics ===")
        self.info(f"Lookup calls: {metrics['lookup_calls']}")
        self.info(
            f"Resolutions: {metrics['resolutions_assigned']}/{metrics['resolutions_attempted']} "
            f"assigned ({metrics['assignment_rate'] * 100:.1f}%), "
            f"{metrics['resolutions_unassigned']} unassigned"
        )

        if metrics["rule_hits"]:
            self.info("Rule hits:")
            for rule, count in metrics["rule_hits"].items():
                self.info(f"  {rule}: {count}")

        if metrics["lookup_failures"]:
            self.info("Lookup failures:")
            for rule, count in metrics["lookup_failures"].items():
                self.info(f"  {rule}: {count}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "workengine",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level, log directory and file output default to WORKENGINE_LOG_LEVEL,
    WORKENGINE_LOG_DIR and WORKENGINE_LOG_TO_FILE.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        kwargs.setdefault("log_dir", Path(os.getenv("WORKENGINE_LOG_DIR", "logs")))
        kwargs.setdefault(
            "enable_file",
            parse_bool("WORKENGINE_LOG_TO_FILE", os.getenv("WORKENGINE_LOG_TO_FILE"), True),
        )
        _global_logger = StructuredLogger(
            name=name,
            level=level or os.getenv("WORKENGINE_LOG_LEVEL", "INFO"),
            **kwargs,
        )

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
