"""Logging for LAN Sweep.

Everything logs under the `lansweep` logger. `setup_logging` attaches a
rotating file handler and a rich console handler; until it is called the
package logs nowhere, so importing the scanner as a library stays quiet.

The console only shows warnings unless debug is on, which keeps log lines
from tearing through the command line's progress bar.

Usage:
    from config.logging_config import setup_logging, get_logger

    setup_logging(debug=True)          # once, from an entry point
    logger = get_logger(__name__)      # in any module
    logger.info("Ping sweep finished")
"""
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from config.constants import STORAGE

ROOT_LOGGER_NAME = 'lansweep'
DATA_DIR_ENV = 'LANSWEEP_DATA_DIR'

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_loggers: Dict[str, logging.Logger] = {}

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def default_data_dir() -> Path:
    """Directory for the log file: $LANSWEEP_DATA_DIR or ~/.lan-sweep."""
    override = os.getenv(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / STORAGE.DATA_DIR_NAME


def setup_logging(
    data_dir: Optional[Path] = None,
    debug: bool = False,
    console_output: bool = True,
    log_to_file: bool = True
) -> logging.Logger:
    """Configure the `lansweep` logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        data_dir: Where the log file goes. See default_data_dir().
        debug: Log debug records, and show them on the console.
        console_output: Log to stderr through rich.
        log_to_file: Log to a rotating file in data_dir.

    Returns:
        The `lansweep` logger.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = []

    if log_to_file:
        data_dir = data_dir or default_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            data_dir / STORAGE.LOG_FILE,
            maxBytes=STORAGE.LOG_MAX_BYTES,
            backupCount=STORAGE.LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(file_handler)

    if console_output:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=debug,
            markup=False,
        )
        console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
        handlers.append(console_handler)

    if not handlers:
        handlers.append(logging.NullHandler())
    for handler in handlers:
        root_logger.addHandler(handler)

    root_logger.info(
        f"Logging initialized - level={'DEBUG' if debug else 'INFO'}, "
        f"file={log_to_file}, console={console_output}"
    )
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get the logger for a module.

    Only the last two parts of a dotted name are kept, so
    `get_logger("discovery.engine")` logs as `lansweep.discovery.engine`.
    """
    short_name = '.'.join(name.split('.')[-2:])
    logger = _loggers.get(short_name)
    if logger is None:
        logger = logging.getLogger(f'{ROOT_LOGGER_NAME}.{short_name}')
        _loggers[short_name] = logger
    return logger


def log_exception(logger: logging.Logger, message: str, exc: Exception) -> None:
    """Log an unexpected exception with its traceback."""
    logger.error(
        f"{message}: {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={'exception_type': type(exc).__name__}
    )


def log_subprocess_call(
    logger: logging.Logger,
    command: list,
    returncode: int,
    duration_ms: float,
    success: bool
) -> None:
    """Log one finished system command at debug level.

    A non-zero status is routine here (an unanswered ping exits 1), so
    failures are not raised to warnings.
    """
    shown = ' '.join(command[:3]) + (' ...' if len(command) > 3 else '')
    logger.debug(f"Subprocess: {shown} -> rc={returncode}, {duration_ms:.1f}ms, ok={success}")


class LogContext:
    """Logs how long a block took.

    Example:
        >>> with LogContext(logger, "Ping sweep of 254 addresses"):
        ...     sweep()
        # Logs: "Ping sweep of 254 addresses completed in 1234ms"
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.log(self.level, f"{self.operation} starting...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.monotonic() - self.start_time) * 1000

        if exc_type:
            self.logger.error(f"{self.operation} failed after {self.elapsed_ms:.0f}ms: {exc_val}")
        else:
            self.logger.log(self.level, f"{self.operation} completed in {self.elapsed_ms:.0f}ms")
        return False
