"""Logging setup for bucketsync.

Everything logs through structlog, rendered by the stdlib root logger: a
colored console handler on stderr (stdout is reserved for command output)
and an optional rotating JSON file.
"""

import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

import structlog
import colorlog
from structlog.typing import Processor

from ..config.settings import get_settings

# boto3 logs every request at INFO and DEBUG
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger.

    Arguments left as None fall back to ``settings.logging``. Calling this
    again replaces the handlers installed by the previous call.
    """
    settings = get_settings()

    level = (log_level or settings.logging.level).upper()
    format_type = log_format or settings.logging.format
    file_path = log_file or settings.logging.file_path

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    library_level = max(getattr(logging, level), logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if file_path:
        root_logger.addHandler(_file_handler(file_path, level))

    root_logger.addHandler(_console_handler(level))


def _file_handler(file_path: str, level: str) -> logging.Handler:
    log_file = Path(file_path).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    handler.setLevel(getattr(logging, level))
    handler.setFormatter(logging.Formatter(
        '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
    ))
    return handler


def _console_handler(level: str) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level))
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        reset=True,
        log_colors=LOG_COLORS,
    ))
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(func):
    """Log how long a synchronous call took, at debug level."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__qualname__)
        start_time = time.monotonic()

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Call failed",
                function=func.__qualname__,
                execution_time=f"{time.monotonic() - start_time:.4f}s",
                error=str(e)
            )
            raise

        logger.debug(
            "Call finished",
            function=func.__qualname__,
            execution_time=f"{time.monotonic() - start_time:.4f}s"
        )
        return result

    return wrapper


def log_async_execution_time(func):
    """Log how long a coroutine took. Sync runs can take minutes, so this logs at info."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__qualname__)
        start_time = time.monotonic()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Async call failed",
                function=func.__qualname__,
                execution_time=f"{time.monotonic() - start_time:.4f}s",
                error=str(e)
            )
            raise

        logger.info(
            "Async call finished",
            function=func.__qualname__,
            execution_time=f"{time.monotonic() - start_time:.4f}s"
        )
        return result

    return wrapper
