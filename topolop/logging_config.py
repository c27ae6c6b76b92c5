"""
Logging configuration for analysis runs.

This module provides structured (JSON lines) logging of adapter lifecycle
events, rejected issues and run summaries.
"""

import json
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Any

LOGGER_NAME = "topolop"

# Fields copied from `extra=` into the JSON record when present
EVENT_FIELDS = (
    "event",
    "adapter",
    "outcome",
    "error_kind",
    "canonical_path",
    "reason",
    "elapsed_ms",
    "issue_count",
    "run_id",
)


class AnalysisEventFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EVENT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["error"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_logging(
    log_file: str | None = None,
    log_level: str = "INFO",
    enable_console: bool = True,
) -> logging.Logger:
    """
    Configure logging for analysis runs.

    Args:
        log_file: Path to log file (optional)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_console: Whether to also log to stderr

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = AnalysisEventFormatter()

    if log_file:
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="D",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def summarize_log(log_file: str) -> dict[str, Any]:
    """
    Summarize a JSON-lines run log.

    Args:
        log_file: Path to the log file

    Returns:
        Dictionary with outcome counts per adapter and rejection totals
    """
    stats: dict[str, Any] = {
        "runs": 0,
        "rejected_issues": 0,
        "outcomes": {},
        "adapters": {},
    }

    try:
        with open(log_file, encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue

                event = entry.get("event")
                if event == "run_finished":
                    stats["runs"] += 1
                elif event == "issue_rejected":
                    stats["rejected_issues"] += 1
                elif event == "adapter_finished":
                    outcome = entry.get("outcome", "unknown")
                    adapter = entry.get("adapter", "unknown")
                    stats["outcomes"][outcome] = stats["outcomes"].get(outcome, 0) + 1
                    per_adapter = stats["adapters"].setdefault(adapter, {})
                    per_adapter[outcome] = per_adapter.get(outcome, 0) + 1
    except FileNotFoundError:
        pass

    return stats
