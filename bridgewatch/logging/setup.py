"""
Logging configuration for bridgewatch.

Provides:
- Rich console output with colors and formatting
- Rotating file logs with JSON structure
- Per-attempt loggers that receive step transition events
"""
import logging
import json
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from ..core.config import get_config
from ..core.types import StepStatus, TransitionEvent


# Global console instance (shared with the progress reporter)
console = Console(stderr=True)

EXTRA_FIELDS = ("progress_id", "step_id", "cast_id", "attempt", "status")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for file logs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def setup_logging(
    level: str = "INFO",
    enable_file_logging: bool = False,
    log_file: Optional[Path] = None,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_file_logging: Whether to write logs to files
        log_file: Custom log file path (uses default if None)
        json_format: Use JSON format for file logs
    """
    config = get_config()

    root_logger = logging.getLogger("bridgewatch")
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )
    console_handler.setLevel(getattr(logging, level.upper()))
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        config.ensure_directories()
        log_path = log_file or (config.logs_dir / "bridgewatch.log")

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.log.max_file_size,
            backupCount=config.log.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File captures everything

        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(HumanFormatter())

        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Module name (will be prefixed with 'bridgewatch.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"bridgewatch.{name}")


class AttemptLogger:
    """
    Context-managed logger for one bridging attempt.

    Instances are callable, so they can be passed directly as the
    ``on_transition`` sink of a ProgressTracker or CastMonitor. With
    ``log_dir`` set, a per-attempt log file is written as well.
    """

    def __init__(self, progress_id: str, direction: str, log_dir: Optional[Path] = None):
        self.progress_id = progress_id
        self.direction = direction
        self.log_dir = log_dir
        self.logger = logging.getLogger(f"bridgewatch.attempt.{progress_id}")
        self.attempt_log_path: Optional[Path] = None
        self._file_handler: Optional[logging.Handler] = None

    def __enter__(self) -> "AttemptLogger":
        if self.log_dir is not None:
            self.attempt_log_path = Path(self.log_dir) / f"{self.progress_id}.log"
            self.attempt_log_path.parent.mkdir(parents=True, exist_ok=True)

            self._file_handler = logging.FileHandler(
                self.attempt_log_path, encoding="utf-8"
            )
            self._file_handler.setFormatter(HumanFormatter())
            self._file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(self._file_handler)

        self.info(f"Bridge attempt started ({self.direction})")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"Bridge attempt aborted: {exc_val}",
                exc_info=True,
                extra={"progress_id": self.progress_id},
            )
        else:
            self.info("Bridge attempt finished")

        if self._file_handler:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def __call__(self, event: TransitionEvent) -> None:
        """Log a step transition event."""
        extra = {"step_id": event.step_id, "status": event.status.value}
        text = f"[{event.step_id}] {event.kind} -> {event.status.value}"
        if event.message:
            text += f": {event.message}"
        if event.tx_hash:
            text += f" (tx {event.tx_hash})"

        if event.status == StepStatus.FAILED:
            self.error(text, **extra)
        elif event.kind == "message":
            self.debug(text, **extra)
        else:
            self.info(text, **extra)

    def info(self, message: str, **kwargs):
        """Log info message with optional extra fields."""
        extra = {"progress_id": self.progress_id, **kwargs}
        self.logger.info(message, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional extra fields."""
        extra = {"progress_id": self.progress_id, **kwargs}
        self.logger.debug(message, extra=extra)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional extra fields."""
        extra = {"progress_id": self.progress_id, **kwargs}
        self.logger.warning(message, extra=extra)

    def error(self, message: str, **kwargs):
        """Log error message with optional extra fields."""
        extra = {"progress_id": self.progress_id, **kwargs}
        self.logger.error(message, extra=extra)
