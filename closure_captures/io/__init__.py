"""I/O utilities for closure-captures.

Provides file logging and JSON-lines reports.
"""

from .logging import get_logger, get_timestamped_log_path, log_json

__all__ = [
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
]
