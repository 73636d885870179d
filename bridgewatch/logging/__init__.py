"""Logging infrastructure."""
from .setup import setup_logging, get_logger, AttemptLogger

__all__ = ["setup_logging", "get_logger", "AttemptLogger"]
