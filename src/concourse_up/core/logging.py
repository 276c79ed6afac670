"""Logging setup and key=value context logging for concourse-up."""

import logging
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "concourse_up"

# Context keys whose values never reach a log line
SECRET_MARKERS = ("password", "secret", "private_key", "token", "encryption_key")

NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "httpx", "httpcore")


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def levelno(self) -> int:
        return getattr(logging, self.value.upper())


def setup_logging(
    level: LogLevel = LogLevel.WARNING,
    rich_output: bool = True,
) -> logging.Logger:
    """Route log records to stderr.

    stdout is reserved for deploy progress and command output, so logs
    never mix with anything a user might pipe or eval.

    Args:
        level: Level for concourse-up's own loggers
        rich_output: Use RichHandler instead of a plain formatter

    Returns:
        The package root logger
    """
    handler: logging.Handler
    if rich_output:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.levelno)

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(level.levelno)

    # Library chatter stays at WARNING even under -vv
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the concourse_up namespace.

    Args:
        name: Module name (typically __name__) or a short component name

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _is_secret(key: str) -> bool:
    key = key.lower()
    return any(marker in key for marker in SECRET_MARKERS)


class StructuredLogger:
    """Logger that appends bound and per-call context as key=value pairs.

    Values for keys that look like credentials are replaced before
    formatting.
    """

    def __init__(self, name: str, context: dict[str, Any] | None = None):
        self._logger = get_logger(name)
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Return a logger that always carries the given context."""
        return StructuredLogger(self._logger.name, {**self._context, **kwargs})

    def _format_message(self, message: str, **kwargs: Any) -> str:
        context = {**self._context, **kwargs}
        if not context:
            return message
        pairs = " ".join(
            f"{key}={'<redacted>' if _is_secret(key) else value}" for key, value in context.items()
        )
        return f"{message} [{pairs}]"

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._format_message(message, **kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)
