"""
Chunkwise logging.

One named logger ('Chunkwise') shared by every module. Records always go to
the log file under the app data directory (when it is writable); in debug
mode they are echoed to stderr as well. stdout is left alone because the CLI
writes its JSON results there.

Modules log through the helpers below and tag each message with the
component in brackets:

    from chunkwise.logging_config import debug_log, info, warning, error

    debug_log("[DOC MODEL] Merging 34 chunks of 'report' group 'pages'")
    info("[JOBS] Created job 3f2a... (method=map, document='report')")

Debug mode comes from the DEBUG environment variable (see config.DEBUG_MODE)
or from configure_logging(debug=True), which the CLI's --verbose flag uses.
"""

import logging
import sys
import time
from pathlib import Path

from chunkwise.config import DEBUG_MODE, LOG_DATE_FORMAT, LOG_FILE, LOG_FORMAT

LOGGER_NAME = 'Chunkwise'

_logger = logging.getLogger(LOGGER_NAME)


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def _file_handler(path: Path) -> logging.Handler:
    # An unwritable app data dir must not stop the engine from running
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding='utf-8')
    except OSError:
        return logging.NullHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(_formatter())
    return handler


def configure_logging(debug: bool | None = None, log_file: Path | None = None) -> logging.Logger:
    """
    (Re)build the Chunkwise logger's handlers.

    Args:
        debug: Verbose mode. Defaults to DEBUG_MODE.
        log_file: Log file path. Defaults to LOG_FILE.

    Returns:
        The configured logger.
    """
    if debug is None:
        debug = DEBUG_MODE

    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
        handler.close()

    _logger.setLevel(logging.DEBUG if debug else logging.INFO)
    _logger.addHandler(_file_handler(log_file or LOG_FILE))

    if debug:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG)
        console.setFormatter(_formatter())
        _logger.addHandler(console)

    return _logger


if not _logger.handlers:
    configure_logging()


def debug_log(message: str):
    """Detailed tracing; only recorded in debug mode."""
    _logger.debug(message)


def info(message: str):
    _logger.info(message)


def warning(message: str):
    _logger.warning(message)


def error(message: str, exc_info: bool = False):
    """
    Log an error, optionally with the active exception's traceback.

    Args:
        message: The error message to log
        exc_info: If True, include exception traceback
    """
    _logger.error(message, exc_info=exc_info)


def critical(message: str, exc_info: bool = True):
    _logger.critical(message, exc_info=exc_info)


def _format_elapsed(elapsed_seconds: float) -> str:
    if elapsed_seconds < 1:
        return f"{elapsed_seconds * 1000:.0f} ms"
    if elapsed_seconds < 60:
        return f"{elapsed_seconds:.2f}s"
    return f"{elapsed_seconds / 60:.1f}m"


def debug_timing(operation: str, elapsed_seconds: float):
    """
    Log how long an operation took ("250 ms", "2.50s", "1.5m").

    Args:
        operation: Description, usually with a [COMPONENT] tag
        elapsed_seconds: Elapsed wall time in seconds
    """
    debug_log(f"{operation} took {_format_elapsed(elapsed_seconds)}")


class Timer:
    """
    Times a block and logs its start and duration.

    Usage:
        with Timer("Re-chunking (merge_and_split)"):
            rechunk(document, "merge_and_split", 1000)

    Attributes:
        operation_name: Label used in the log lines
        duration_ms: Elapsed milliseconds, set when the block exits
    """

    def __init__(self, operation_name: str, auto_log: bool = True):
        self.operation_name = operation_name
        self.auto_log = auto_log
        self.duration_ms: float | None = None
        self._start: float | None = None

    def __enter__(self):
        if self.auto_log:
            debug_log(f"Starting {self.operation_name}...")
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - self._start
        self.duration_ms = elapsed * 1000
        if self.auto_log:
            debug_timing(self.operation_name, elapsed)
        return False

    def get_duration_ms(self) -> float:
        """
        Raises:
            ValueError: If the block has not finished yet
        """
        if self.duration_ms is None:
            raise ValueError("Timer has not been completed yet")
        return self.duration_ms


__all__ = [
    'configure_logging',
    'critical',
    'debug_log',
    'debug_timing',
    'error',
    'info',
    'warning',
    'Timer',
    'DEBUG_MODE',
]
