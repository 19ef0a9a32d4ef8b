"""
Logging setup shared by the docconvert service, library and CLI.

Settings come from the environment:
- LOG_LEVEL (or LOGLEVEL): DEBUG, INFO, WARNING, ERROR; WARNING under pytest
- LOG_FORMAT: "standard" or "dev" (adds line numbers)
- LOG_TO_FILE / LOG_FILE: also write to a rotating log file
"""

import functools
import inspect
import logging
import logging.handlers
import os
import sys
import time
from pathlib import Path
from typing import Dict, Optional, Union

FORMATS = {
    "standard": '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    "dev": '%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(message)s',
}

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
    'FATAL': logging.CRITICAL,
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def parse_level(value: Union[str, int, None]) -> int:
    """Turn a level name into a logging level; INFO if unknown."""
    if isinstance(value, int):
        return value
    return LEVELS.get((value or "").strip().upper(), logging.INFO)


class LogConfig:
    """Environment-driven logging settings."""

    @staticmethod
    def get_log_level() -> int:
        level_str = os.getenv('LOG_LEVEL', os.getenv('LOGLEVEL'))
        if level_str:
            return parse_level(level_str)
        # Keep test output quiet unless asked otherwise
        if 'pytest' in sys.modules or 'PYTEST_CURRENT_TEST' in os.environ:
            return logging.WARNING
        return logging.INFO

    @staticmethod
    def get_log_format(format_type: Optional[str] = None) -> str:
        name = (format_type or os.getenv('LOG_FORMAT', 'standard')).lower()
        if name == 'development':
            name = 'dev'
        return FORMATS.get(name, FORMATS['standard'])

    @staticmethod
    def get_log_file() -> Optional[Path]:
        if os.getenv('LOG_TO_FILE', 'false').lower() not in ('true', '1', 'yes'):
            return None
        log_file = os.getenv('LOG_FILE')
        return Path(log_file) if log_file else None


class LoggerFactory:
    """Configures the root logger once and hands out named loggers."""

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def configure_logging(cls, level: Optional[int] = None,
                          format_type: Optional[str] = None,
                          log_file: Optional[Union[str, Path]] = None,
                          force: bool = False) -> None:
        if cls._configured and not force:
            return

        log_level = level or LogConfig.get_log_level()
        formatter = logging.Formatter(LogConfig.get_log_format(format_type))
        log_file_path = Path(log_file) if log_file else LogConfig.get_log_file()

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if log_file_path:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if name not in cls._loggers:
            cls.configure_logging()
            cls._loggers[name] = logging.getLogger(name)
        return cls._loggers[name]


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return LoggerFactory.get_logger(name or "docconvert")


def setup_logging(level: Union[str, int, None] = None,
                  format_type: Optional[str] = None,
                  log_file: Optional[Union[str, Path]] = None) -> None:
    """Reconfigure logging, replacing any earlier setup (used by the CLI's --log-level)."""
    LoggerFactory.configure_logging(
        level=parse_level(level) if level is not None else None,
        format_type=format_type,
        log_file=log_file,
        force=True
    )


def log_performance(logger: logging.Logger, level: int = logging.INFO):
    """Decorator logging how long a sync or async callable takes."""
    def decorator(func):
        def finished(start_time, error=None):
            duration = time.perf_counter() - start_time
            if error is None:
                logger.log(level, f"Completed {func.__name__} in {duration:.3f}s")
            else:
                logger.log(level, f"Failed {func.__name__} after {duration:.3f}s: {error}")

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    finished(start_time, e)
                    raise
                finished(start_time)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                finished(start_time, e)
                raise
            finished(start_time)
            return result
        return wrapper
    return decorator
