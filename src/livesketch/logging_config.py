"""
Logging Configuration for livesketch.

Provides centralized logger setup for the reload engine trace log.
Loggers write to stderr from import time and to a file in the log directory
once ensure_reload_trace_logger_configured() has run, which happens after
livesketch.json was loaded so its log_dir and debug_log settings apply.
"""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

# Log directory priority:
# 1. LIVESKETCH_LOG_DIR (explicit)
# 2. CWD/.livesketch (fallback)
def _get_log_directory() -> Path:
    """Get the log directory path."""
    log_dir = os.getenv("LIVESKETCH_LOG_DIR")
    if not log_dir:
        log_dir = str(Path.cwd() / ".livesketch")
    return Path(log_dir)


def _ensure_log_directory() -> Path:
    """Ensure log directory exists and return its path."""
    log_dir = _get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _debug_log_enabled() -> bool:
    """Set LIVESKETCH_DEBUG_LOG="" to disable the file log."""
    return os.getenv("LIVESKETCH_DEBUG_LOG") != ""


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'reload_trace.log')

    Returns:
        Configured FileHandler, or None if logging is disabled
    """
    if not _debug_log_enabled():
        return None

    try:
        log_dir = _ensure_log_directory()
        log_path = log_dir / log_filename
        handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        return handler
    except OSError:
        return None


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a handler.
    ::: This is stateless.
    """
    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler() -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(logging.WARNING)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    return handler


def get_reload_trace_logger() -> logging.Logger:
    """
    Get the trace logger for reload engine operations.

    Every reload decision, patch and state transition is logged here.
    Output goes to stderr (warnings and up) and, once configured, to
    reload_trace.log in the log directory.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("livesketch.reload_trace")

    # Only configure once
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        logger.addHandler(_create_stderr_handler())

    return logger


reload_trace_logger = get_reload_trace_logger()

# Loggers sharing the trace handlers, and the file log settings they use
_trace_loggers: List[logging.Logger] = [reload_trace_logger]
_configured_file_log: Optional[Tuple[bool, Path]] = None


def ensure_reload_trace_logger_configured() -> logging.Logger:
    """
    Ensure the trace log file matches LIVESKETCH_LOG_DIR and LIVESKETCH_DEBUG_LOG.

    Call this once the environment is final, e.g. after livesketch.json was
    loaded. The file handler of every trace logger is re-created when the log
    directory changed or the file log was switched on or off.

    Returns:
        Configured logger instance
    """
    global _configured_file_log

    current = (_debug_log_enabled(), _get_log_directory())
    if current == _configured_file_log:
        return reload_trace_logger

    old_handlers = set()
    for logger in _trace_loggers:
        for handler in logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                old_handlers.add(handler)
    for handler in old_handlers:
        handler.close()

    file_handler = _create_file_handler("reload_trace.log")
    if file_handler:
        for logger in _trace_loggers:
            logger.addHandler(file_handler)

    _configured_file_log = current
    return reload_trace_logger


def configure_logger_for_debug_trace(logger_name: str) -> logging.Logger:
    """
    Configure a logger to also write to the trace log handlers.

    Args:
        logger_name: Name of the logger to configure (e.g., __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    for handler in reload_trace_logger.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    if logger not in _trace_loggers:
        _trace_loggers.append(logger)
    return logger


def suppress_stderr_logging():
    """
    Suppress stderr logging for the trace logger.

    Call this while the rich diagnostics console owns the terminal.
    File logging continues to work normally.
    """
    for handler in reload_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)


def restore_stderr_logging():
    """Restore stderr logging for the trace logger."""
    for handler in reload_trace_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.WARNING)
