"""Configuration module for LAN Sweep.

Provides centralized configuration, logging, exceptions, and utilities.
"""
from config.constants import (
    ALLOWED_SUBPROCESS_COMMANDS,
    APP_NAME,
    APP_VERSION,
    EVENTS,
    INTERVALS,
    NETWORK,
    SCAN,
    STORAGE,
    WEB,
    EventConfig,
    Intervals,
    NetworkConfig,
    ScanDefaults,
    StorageConfig,
    WebConfig,
)
from config.exceptions import (
    ConfigurationError,
    InvalidRangeError,
    LanSweepError,
    ScanConflictError,
    ScannerError,
    SubprocessError,
)
from config.logging_config import get_logger, log_exception, setup_logging
from config.subprocess_cache import (
    SubprocessCache,
    get_subprocess_cache,
    run_with_fallback,
    safe_run,
)

__all__ = [
    # Constants
    "APP_NAME",
    "APP_VERSION",
    "SCAN",
    "NETWORK",
    "EVENTS",
    "STORAGE",
    "WEB",
    "INTERVALS",
    "ScanDefaults",
    "NetworkConfig",
    "EventConfig",
    "StorageConfig",
    "WebConfig",
    "Intervals",
    "ALLOWED_SUBPROCESS_COMMANDS",
    # Exceptions
    "LanSweepError",
    "ScannerError",
    "InvalidRangeError",
    "ScanConflictError",
    "ConfigurationError",
    "SubprocessError",
    # Logging
    "setup_logging",
    "get_logger",
    "log_exception",
    # Subprocess
    "SubprocessCache",
    "safe_run",
    "run_with_fallback",
    "get_subprocess_cache",
]
