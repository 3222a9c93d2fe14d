"""
Logging Configuration for ai-index.

Provides centralized logger setup for the debug trace log.
All module loggers write to a file in the log directory and to stderr.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


# Log directory priority:
# 1. AI_INDEX_LOG_DIR (explicit)
# 2. ~/.ai-index/logs (fallback)
def _get_log_directory() -> Path:
    """Get the log directory path."""
    log_dir = os.getenv("AI_INDEX_LOG_DIR")
    if not log_dir:
        log_dir = str(Path.home() / ".ai-index" / "logs")
    return Path(log_dir)


def _ensure_log_directory() -> Path:
    """Ensure log directory exists and return its path."""
    log_dir = _get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


# Set AI_INDEX_DEBUG_LOG="" to disable the log file
_debug_log_env = os.getenv("AI_INDEX_DEBUG_LOG")
DEBUG_LOG_ENABLED = _debug_log_env is None or _debug_log_env != ""

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'debug_trace.log')

    Returns:
        Configured FileHandler, or None if logging is disabled or the
        directory is not writable
    """
    if not DEBUG_LOG_ENABLED:
        return None

    try:
        log_dir = _ensure_log_directory()
        handler = logging.FileHandler(log_dir / log_filename, mode='a', encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_FORMAT))
        return handler
    except OSError:
        return None


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler() -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(_FORMAT))
    return handler


def get_debug_trace_logger() -> logging.Logger:
    """
    Get the shared debug trace logger.

    Output goes to <log dir>/debug_trace.log and stderr.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("ai_index.debug_trace")

    # Only configure once
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        file_handler = _create_file_handler("debug_trace.log")
        if file_handler:
            logger.addHandler(file_handler)

        logger.addHandler(_create_stderr_handler())

    return logger


debug_trace_logger = get_debug_trace_logger()


def configure_logger(logger_name: str) -> logging.Logger:
    """
    Configure a module logger to share the debug trace handlers.

    Args:
        logger_name: Name of the logger to configure (e.g., __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in debug_trace_logger.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    return logger


_stderr_suppressed = False


def is_stderr_suppressed() -> bool:
    """Whether stderr logging is currently muted by a progress display."""
    return _stderr_suppressed


def suppress_stderr_logging():
    """
    Suppress stderr logging for the debug trace handlers.

    Call this while a rich progress display is live. File logging
    continues to work normally.
    """
    global _stderr_suppressed
    for handler in debug_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)
    _stderr_suppressed = True


def restore_stderr_logging():
    """Restore stderr logging after the progress display is done."""
    global _stderr_suppressed
    for handler in debug_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.INFO)
    _stderr_suppressed = False
