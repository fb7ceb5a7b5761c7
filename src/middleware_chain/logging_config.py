"""
Logging Configuration for the middleware chain compiler.

Provides centralized logger setup for build-pass logs.
The build logger writes to stderr and, unless disabled, to a file in the
auto-detected log directory.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

BUILD_LOGGER_NAME = "middleware_chain.build"
BUILD_LOG_FILENAME = "build.log"

_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# Log directory priority:
# 1. MIDDLEWARE_CHAIN_LOG_DIR (explicit)
# 2. CWD/.middleware_chain (fallback)
def _get_log_directory() -> Path:
    """Get the log directory path."""
    log_dir = os.getenv("MIDDLEWARE_CHAIN_LOG_DIR")
    if not log_dir:
        log_dir = str(Path.cwd() / ".middleware_chain")
    return Path(log_dir)


def _debug_log_enabled() -> bool:
    # Set MIDDLEWARE_CHAIN_DEBUG_LOG="" to disable file logging
    value = os.getenv("MIDDLEWARE_CHAIN_DEBUG_LOG")
    return value is None or value != ""


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'build.log')

    Returns:
        Configured FileHandler, or None if file logging is disabled or the
        directory cannot be created
    """
    if not _debug_log_enabled():
        return None

    try:
        log_dir = _get_log_directory()
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / log_filename, mode='a', encoding='utf-8')
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


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
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


def get_build_logger() -> logging.Logger:
    """
    Get the build logger used by the build pass.

    Output goes to stderr and .middleware_chain/build.log.
    Handlers are attached only once.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(BUILD_LOGGER_NAME)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        file_handler = _create_file_handler(BUILD_LOG_FILENAME)
        if file_handler:
            logger.addHandler(file_handler)

        logger.addHandler(_create_stderr_handler())

    return logger


def reset_build_logger() -> None:
    """Close and detach every handler of the build logger."""
    logger = logging.getLogger(BUILD_LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


def suppress_stderr_logging():
    """
    Suppress stderr output of the build logger.

    File logging continues to work normally.
    """
    for handler in get_build_logger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)  # Effectively disable


def restore_stderr_logging():
    """Restore stderr output of the build logger."""
    for handler in get_build_logger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.INFO)
