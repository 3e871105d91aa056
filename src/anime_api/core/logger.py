"""Logging setup: RichHandler console output plus non-blocking queue-based file logging.

Features:

1.  **Rich Console Output:** ``rich.logging.RichHandler`` on one shared ``Console``.
2.  **Markup Helpers:** ``LogFormat`` wraps entities, keys and numbers in Rich markup.
3.  **Non-Blocking File Logging:** ``QueueHandler`` + ``SafeQueueListener`` so file
    I/O never runs on the event loop thread.
4.  **Configuration Driven:** levels and file paths come from ``AppConfig.logging``.
5.  **Fallback:** on setup failure ``get_loggers`` returns basic stream loggers.
"""

from __future__ import annotations

import logging
import queue
import sys
import traceback
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from anime_api.core.models.config_models import AppConfig

__all__ = [
    "CONSOLE_LOGGER_NAME",
    "ERROR_LOGGER_NAME",
    "LogFormat",
    "LoggerFilter",
    "SafeQueueListener",
    "create_console_logger",
    "create_fallback_loggers",
    "get_log_levels_from_config",
    "get_loggers",
    "get_shared_console",
    "setup_queue_logging",
]

CONSOLE_LOGGER_NAME = "console_logger"
ERROR_LOGGER_NAME = "error_logger"

# Module-level shared console container (avoids global statement)
_console_holder: dict[str, Console] = {}


def get_shared_console() -> Console:
    """Get or create the shared Rich console instance.

    Returns:
        The shared Console instance.

    """
    if "console" not in _console_holder:
        _console_holder["console"] = Console()
    return _console_holder["console"]


class SafeQueueListener(QueueListener):
    """A QueueListener wrapper that safely handles stop() calls."""

    def stop(self) -> None:
        """Stop the listener thread safely, handling cases where _thread is None."""
        try:
            if getattr(self, "_thread", None) is not None:
                super().stop()
        except (AttributeError, RuntimeError, TypeError) as e:
            print(f"Warning: Error stopping QueueListener: {e}", file=sys.stderr)


class LogFormat:
    """Rich markup helpers for consistent log formatting.

    Example:
        from anime_api.core.logger import LogFormat as LF
        logger.info("Initializing %s...", LF.entity("JsonCacheService"))
        logger.info("Deleted %s keys for %s", LF.number(12), LF.key("anime-api:anime:*"))
    """

    @staticmethod
    def entity(name: str) -> str:
        """Format entity/class name with yellow highlighting."""
        return f"[yellow]{name}[/yellow]"

    @staticmethod
    def key(name: str) -> str:
        """Format a cache key, pattern or table name with cyan highlighting."""
        return f"[cyan]{name}[/cyan]"

    @staticmethod
    def number(value: float) -> str:
        """Format numbers with bright white highlighting."""
        return f"[bright_white]{value}[/bright_white]"

    @staticmethod
    def success(text: str) -> str:
        """Format success status with green highlighting."""
        return f"[green]{text}[/green]"

    @staticmethod
    def error(text: str) -> str:
        """Format error status with red highlighting."""
        return f"[red]{text}[/red]"

    @staticmethod
    def duration_ms(milliseconds: float) -> str:
        """Format a duration in milliseconds with dim styling."""
        return f"[dim]{milliseconds:.1f}ms[/dim]"


class LoggerFilter:
    """Filter that only allows records from specific logger names."""

    def __init__(self, allowed_loggers: list[str]) -> None:
        """Initialize filter with allowed logger names.

        Args:
            allowed_loggers: Logger names that pass the filter.
                Child loggers (e.g., "anime_api.services") also pass if the parent is allowed.

        """
        self.allowed_loggers = set(allowed_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True if the record's logger matches or is a child of an allowed logger."""
        return any(record.name == logger or record.name.startswith(f"{logger}.") for logger in self.allowed_loggers)


_LOG_LEVELS: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def get_log_levels_from_config(config: AppConfig) -> dict[str, int]:
    """Extract log levels for the console and file targets.

    Args:
        config: Typed application configuration.

    Returns:
        Dictionary with ``"console"`` and ``"main_file"`` logging level constants.

    """
    levels_config = config.logging.levels
    return {
        "console": _LOG_LEVELS.get(str(levels_config.console).upper(), logging.INFO),
        "main_file": _LOG_LEVELS.get(str(levels_config.main_file).upper(), logging.INFO),
    }


def create_console_logger(levels: dict[str, int]) -> logging.Logger:
    """Create and configure the console logger with RichHandler.

    Only adds the handler if the logger has none yet.

    Args:
        levels: Dictionary with "console" key containing logging level constant.

    Returns:
        Configured console logger instance.

    """
    console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    if not console_logger.handlers:
        ch = RichHandler(
            level=levels["console"],
            console=get_shared_console(),
            show_path=False,
            enable_link_path=False,
            log_time_format="%H:%M:%S",
            markup=True,
        )
        ch.setLevel(levels["console"])
        console_logger.addHandler(ch)
        console_logger.setLevel(levels["console"])
        console_logger.propagate = False
    return console_logger


def setup_queue_logging(
    log_file: str,
    levels: dict[str, int],
) -> tuple[logging.Logger, SafeQueueListener]:
    """Route the error logger and library loggers to a file through a queue.

    Args:
        log_file: Destination file path (parent directories are created).
        levels: Dictionary with "main_file" key containing logging level constant.

    Returns:
        Tuple of (error_logger, started listener).

    """
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler.setLevel(levels["main_file"])
    file_handler.addFilter(LoggerFilter([ERROR_LOGGER_NAME, "anime_api", "config"]))

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    listener = SafeQueueListener(log_queue, file_handler, respect_handler_level=True)
    listener.start()

    queue_handler = QueueHandler(log_queue)
    for logger_name in (ERROR_LOGGER_NAME, "anime_api", "config"):
        logger = logging.getLogger(logger_name)
        if not any(isinstance(handler, QueueHandler) for handler in logger.handlers):
            logger.addHandler(queue_handler)
        logger.setLevel(levels["main_file"])

    return logging.getLogger(ERROR_LOGGER_NAME), listener


def get_loggers(config: AppConfig) -> tuple[logging.Logger, logging.Logger, SafeQueueListener | None]:
    """Create and return the console and error loggers.

    Note:
        This function never raises exceptions. On setup failure, it returns
        fallback loggers with basic StreamHandler configuration.

    Args:
        config: Typed application configuration.

    Returns:
        Tuple of (console_logger, error_logger, listener). The listener is
        ``None`` when no log file is configured or setup failed.

    """
    try:
        levels = get_log_levels_from_config(config)
        console_logger = create_console_logger(levels)
        listener: SafeQueueListener | None = None
        if config.logging.main_log_file:
            error_logger, listener = setup_queue_logging(config.logging.main_log_file, levels)
        else:
            error_logger = logging.getLogger(ERROR_LOGGER_NAME)
            if not error_logger.handlers:
                error_logger.addHandler(
                    RichHandler(console=get_shared_console(), show_path=False, log_time_format="%H:%M:%S", markup=True)
                )
                error_logger.setLevel(levels["main_file"])
                error_logger.propagate = False
    except (OSError, ValueError, AttributeError, TypeError) as e:
        return create_fallback_loggers(e)

    console_logger.debug("Logging setup with RichHandler complete.")
    return console_logger, error_logger, listener


def create_fallback_loggers(e: Exception) -> tuple[logging.Logger, logging.Logger, None]:
    """Create fallback loggers when the main logger setup fails.

    Args:
        e: The exception that caused main logger setup to fail.

    Returns:
        Tuple of (console_logger, error_logger, None).

    """
    print(f"FATAL ERROR: Failed to configure logging: {e}", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    logging.critical("Fallback basic logging configured due to error: %s", e)

    console_fallback = logging.getLogger("console_fallback")
    error_fallback = logging.getLogger("error_fallback")
    if not console_fallback.handlers:
        console_fallback.addHandler(logging.StreamHandler(sys.stdout))
    if not error_fallback.handlers:
        error_fallback.addHandler(logging.StreamHandler(sys.stderr))

    return console_fallback, error_fallback, None
