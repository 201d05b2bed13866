"""
Utils Package for Posture AI.

Contains:
- logger: structured session log

Author: Posture AI Team
Version: 1.0.0
"""

from .logger import (
    SessionLogger,
    LogLevel,
    LogCategory,
    LogEntry,
    create_session_logger,
)

__all__ = [
    "SessionLogger",
    "LogLevel",
    "LogCategory",
    "LogEntry",
    "create_session_logger",
]
