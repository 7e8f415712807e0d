"""
Infrastructure module - logging.
"""

from .logging_config import DailyRotatingFileHandler, prune_old_logs, setup_logging

__all__ = [
    "DailyRotatingFileHandler",
    "prune_old_logs",
    "setup_logging",
]
