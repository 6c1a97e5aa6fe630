"""Structured operation logging built on the standard logging module."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from depara.config.models import LoggingSettings

ROOT_LOGGER_NAME = "depara"
_HANDLER_MARKER = "_depara_handler"


def _render(message: str, metadata: dict[str, Any]) -> str:
    if not metadata:
        return message
    pairs = " ".join(f"{key}={metadata[key]}" for key in sorted(metadata))
    return f"{message} | {pairs}"


class OperationLogger:
    """Logging sink exposing level methods plus operation lifecycle events.

    Metadata keyword arguments are appended to the message as ``key=value``
    pairs so that they survive any handler/formatter combination.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(ROOT_LOGGER_NAME)

    @property
    def logger(self) -> logging.Logger:
        """Return the wrapped standard logger."""
        return self._logger

    def debug(self, message: str, **metadata: Any) -> None:
        self._emit(logging.DEBUG, message, metadata)

    def info(self, message: str, **metadata: Any) -> None:
        self._emit(logging.INFO, message, metadata)

    def warning(self, message: str, **metadata: Any) -> None:
        self._emit(logging.WARNING, message, metadata)

    def error(self, message: str, **metadata: Any) -> None:
        self._emit(logging.ERROR, message, metadata)

    def start_operation(self, name: str, **metadata: Any) -> None:
        """Record the start of a named operation."""
        self._emit(logging.INFO, f"Starting {name}", metadata)

    def end_operation(self, name: str, duration_ms: float, **metadata: Any) -> None:
        """Record the successful completion of a named operation."""
        metadata["duration_ms"] = round(duration_ms, 2)
        self._emit(logging.INFO, f"Completed {name}", metadata)

    def operation_error(self, name: str, error: BaseException, **metadata: Any) -> None:
        """Record a failed operation along with the error type and message."""
        metadata["error"] = f"{type(error).__name__}: {error}"
        self._emit(logging.ERROR, f"Failed {name}", metadata)

    def _emit(self, level: int, message: str, metadata: dict[str, Any]) -> None:
        # Handler failures are routed through Handler.handleError and never raise here.
        if self._logger.isEnabledFor(level):
            self._logger.log(level, _render(message, metadata))


def configure_logging(
    settings: LoggingSettings, *, console: Console | None = None
) -> logging.Logger:
    """Attach console (and optional rotating file) handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging configuration section.
        console: Rich console for the console handler; the global console otherwise.

    Returns:
        logging.Logger: The configured ``depara`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(settings.level.upper())

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["ROOT_LOGGER_NAME", "OperationLogger", "configure_logging"]
