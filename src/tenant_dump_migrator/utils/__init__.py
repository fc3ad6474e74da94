"""Shared utilities."""

from .logging import configure_logging, get_logger
from .warning_collector import WarningCollector

__all__ = ["WarningCollector", "configure_logging", "get_logger"]
