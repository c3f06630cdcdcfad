"""Utility modules."""
from .connection import with_retry, CommandResult
from .logging_config import setup_logging, timed, timed_section, perf_logger

__all__ = [
    "with_retry",
    "CommandResult",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
]
