"""
Centralized display utilities for console output and progress tracking.
Provides the rich logging setup and a small progress bar used by the pipelines.
"""

import logging
import os
from typing import Any, Protocol, cast

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.theme import Theme

SUCCESS = 25


# Define Protocol for extended Logger with the success method
class ExtendedLogger(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def success(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


# Create a custom theme for logging
LOGGING_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "blue",
        "logging.level.warning": "bold yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold red on white",
        "logging.level.success": "bold green",
    }
)

# Global console instance with theme
console = Console(theme=LOGGING_THEME)

# Set up a rich handler for logging
rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    tracebacks_show_locals=False,
    markup=False,
    show_time=True,
    show_level=True,
    enable_link_path=True,
    log_time_format="[%X]",
)


def _success(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
    if self.isEnabledFor(SUCCESS):
        self._log(SUCCESS, message, args, stacklevel=2, **kwargs)


logging.addLevelName(SUCCESS, "SUCCESS")
setattr(logging.Logger, "success", _success)


def configure_logging(
    level: str = "INFO", log_file: str | os.PathLike[str] | None = None
) -> ExtendedLogger:
    """
    Configure logging with rich formatting.

    Args:
        level: Logging level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file

    Returns:
        Configured logger instance
    """
    if level.upper() == "SUCCESS":
        numeric_level = SUCCESS
    else:
        numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [rich_handler]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        # Same layout as the console, plus logger name, for grep-friendly files
        file_format = logging.Formatter(
            "[%(asctime)s] [%(levelname)-7s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(file_format)
        file_handler.setLevel(numeric_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )

    # Quiet the HTTP stack unless we are debugging
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.WARNING))

    logger = logging.getLogger("migration")
    logger.debug("Rich logging configured")
    if log_file:
        logger.debug("Log file: %s", log_file)

    return cast(ExtendedLogger, logger)


def get_logger(name: str) -> ExtendedLogger:
    """Return a child of the ``migration`` logger (e.g. ``migration.github``)."""
    return cast(ExtendedLogger, logging.getLogger(f"migration.{name}"))


class ProgressTracker:
    """Progress bar for a batch of concurrent tasks.

    Safe to advance from worker threads; rich serializes the refreshes.
    """

    def __init__(self, description: str, total: int, *, enabled: bool = True) -> None:
        self.description = description
        self.total = total
        self.enabled = enabled and total > 0
        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("({task.completed}/{task.total})"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self.task_id = self.progress.add_task(description, total=total)
        self.processed_count = 0

    def __enter__(self) -> "ProgressTracker":
        if self.enabled:
            self.progress.start()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if self.enabled:
            self.progress.stop()

    def increment(self, advance: int = 1, description: str | None = None) -> None:
        """Advance the bar, optionally changing its description."""
        self.processed_count += advance
        if description:
            self.progress.update(self.task_id, completed=self.processed_count, description=description)
        else:
            self.progress.update(self.task_id, completed=self.processed_count)
