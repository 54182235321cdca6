"""
Structured logging for the matchmaking service.

Wraps the standard logging module with key=value context and a small set
of counters used to monitor match queries and store health.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Logger with console and optional file output.
    Tracks counters for match queries and store calls.
    """

    def __init__(
        self,
        name: str = "genexchange",
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
            enable_file: Write logs to a daily file under log_dir
            enable_console: Output logs to stdout
        """
        self.logger = logging.getLogger(name)
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = {
            "match_queries": 0,
            "profiles_loaded": 0,
            "candidates_scored": 0,
            "store_calls": 0,
            "store_failures": 0,
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        self.configure(level, log_dir=log_dir, enable_file=enable_file)

    def configure(self, level: str, log_dir: Optional[Path] = None, enable_file: bool = False):
        """
        Apply a log level and, optionally, start writing to a daily file.

        Reconfigures in place, so modules holding this instance pick up
        the change.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Add a file handler unless one is already attached
        """
        numeric_level = getattr(logging, level.upper())
        self.logger.setLevel(numeric_level)
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric_level)

        if enable_file and not any(isinstance(h, logging.FileHandler) for h in self.logger.handlers):
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"genexchange_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # file always gets everything
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
            message = f"{message} | Context: {json.dumps(context, ensure_ascii=False, default=str)}"
        self.logger.log(level, message)

    # Metric tracking

    def record_match_query(self, candidates: int):
        """Record one ranking run over the given number of candidates."""
        self.metrics["match_queries"] += 1
        self.metrics["candidates_scored"] += candidates

    def record_profile_loaded(self, count: int = 1):
        self.metrics["profiles_loaded"] += count

    def record_store_call(self):
        self.metrics["store_calls"] += 1

    def record_store_failure(self, error_type: str):
        """Record a failed store call, bucketed by error type."""
        self.metrics["store_failures"] += 1
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a copy of the current metrics with derived failure rate."""
        metrics_copy = dict(self.metrics)
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        calls = metrics_copy["store_calls"]
        metrics_copy["store_failure_rate"] = (
            round(metrics_copy["store_failures"] / calls, 3) if calls else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Matching Session Metrics ===")
        self.info(f"Match queries: {metrics['match_queries']}")
        self.info(f"Candidates scored: {metrics['candidates_scored']}")
        self.info(f"Profiles loaded: {metrics['profiles_loaded']}")
        self.info(
            f"Store calls: {metrics['store_calls']} "
            f"({metrics['store_failures']} failed, rate {metrics['store_failure_rate']})"
        )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "genexchange",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level and log directory default to GENEXCHANGE_LOG_LEVEL and
    GENEXCHANGE_LOG_DIR; file output is enabled when a log directory is set.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        from .config import get_log_settings

        env_level, log_dir = get_log_settings()
        if log_dir is not None:
            kwargs.setdefault("log_dir", log_dir)
            kwargs.setdefault("enable_file", True)
        _global_logger = StructuredLogger(name=name, level=level or env_level, **kwargs)

    return _global_logger


def configure_logging() -> StructuredLogger:
    """
    Re-apply GENEXCHANGE_LOG_LEVEL and GENEXCHANGE_LOG_DIR to the global logger.

    Call after load_env(): modules create the logger at import time, before
    a .env file has been read.
    """
    from .config import get_log_settings

    level, log_dir = get_log_settings()
    logger = get_logger()
    logger.configure(level, log_dir=log_dir, enable_file=log_dir is not None)
    return logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
