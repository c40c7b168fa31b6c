"""
Logging utilities for the paper assistant.

All loggers live under the ``scholarai`` namespace so a single call to
``setup_logger(PACKAGE_LOGGER, ...)`` at start-up controls the whole package.
Also provides a timing decorator for sync and async callables.
"""

import asyncio
import functools
import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union, cast

F = TypeVar("F", bound=Callable[..., Any])

PACKAGE_LOGGER = "scholarai"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TIMING_MESSAGE = "%s executed in %.3f seconds"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper())
    return level


class LoggerMixin:
    """Mixin giving every subclass a logger named after the class."""

    logger: logging.Logger

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.logger = get_logger(cls.__name__)


def get_logger(
    name: str,
    level: Optional[Union[str, int]] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Get a logger inside the package namespace.

    The package logger gets a stdout handler the first time any logger is
    requested, unless ``setup_logger`` already configured it.

    Args:
        name: Logger name; prefixed with ``scholarai.`` when outside the namespace
        level: Optional level (name or number); left unchanged when None
        log_file: Optional file to additionally log to

    Returns:
        The configured logger
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not package_logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT)
        )
        package_logger.addHandler(console_handler)

    logger = logging.getLogger(name)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT)
        )
        logger.addHandler(file_handler)

    if level is not None:
        logger.setLevel(_resolve_level(level))

    return logger


def setup_logger(
    name: str,
    *,
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    file_level: Optional[Union[str, int]] = None,
    format_string: Optional[str] = None,
    date_format: Optional[str] = None,
) -> logging.Logger:
    """
    Reset a logger's handlers and configure it from scratch.

    Args:
        name: Logger name (``PACKAGE_LOGGER`` configures the whole package)
        level: Console level
        log_file: Optional log file
        file_level: Level for the file handler (defaults to ``level``)
        format_string: Optional custom format string
        date_format: Optional custom date format

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    level = _resolve_level(level)
    logger.setLevel(level)
    logger.handlers = []

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT, date_format or DEFAULT_DATE_FORMAT
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(_resolve_level(file_level or level))
        logger.addHandler(file_handler)

    return logger


def log_execution_time(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    message: Optional[str] = None,
) -> Callable[[F], F]:
    """
    Decorator logging how long a function (or coroutine function) took.

    Failures are logged at ERROR with the elapsed time and re-raised.

    Args:
        logger: Logger to use (defaults to the function's module logger)
        level: Level for the timing record
        message: Optional format string taking the function name and seconds

    Returns:
        Decorator function
    """

    def decorator(func: F) -> F:
        log = logger or get_logger(func.__module__)
        log_msg = message or DEFAULT_TIMING_MESSAGE

        def _failed(start_time: float, error: Exception) -> None:
            log.error(
                "%s failed after %.3f seconds: %s",
                func.__name__,
                time.perf_counter() - start_time,
                str(error),
            )

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failed(start_time, e)
                    raise
                log.log(level, log_msg, func.__name__, time.perf_counter() - start_time)
                return result

            return cast(F, async_wrapper)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(start_time, e)
                raise
            log.log(level, log_msg, func.__name__, time.perf_counter() - start_time)
            return result

        return cast(F, wrapper)

    return decorator
