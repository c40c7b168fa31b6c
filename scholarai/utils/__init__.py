"""Utility functions and classes for the paper assistant."""

from scholarai.utils.logging import (
    PACKAGE_LOGGER,
    LoggerMixin,
    get_logger,
    log_execution_time,
    setup_logger,
)

__all__ = [
    "PACKAGE_LOGGER",
    "setup_logger",
    "log_execution_time",
    "get_logger",
    "LoggerMixin",
]
