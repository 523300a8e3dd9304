"""Logging setup for hosts that want promptrouter's log output."""

import sys
from pathlib import Path

from loguru import logger


def configure_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    verbose: bool = False,
) -> None:
    """
    Configure global logging sinks and enable the promptrouter logger.

    Args:
        level: Minimum level for console output.
        log_file: Optional path for a rotating log file.
        verbose: If True, set console level to DEBUG.
    """
    logger.remove()

    console_level = "DEBUG" if verbose else level
    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
            enqueue=True,
        )

    logger.enable("promptrouter")
    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")


def configure_from_config(config) -> None:
    """Apply a LoggingConfig; disabled config leaves the package silent."""
    if not config.enabled:
        logger.disable("promptrouter")
        return
    configure_logging(level=config.level, log_file=config.log_path)
