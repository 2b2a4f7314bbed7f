"""Centralized logging configuration for canvassync."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    verbose: bool = False
) -> None:
    """
    Configure global logging sinks.

    Args:
        level: Minimum level for console output (default: INFO)
        log_file: Optional path for a persistent log file
        verbose: If True, set console level to DEBUG
    """
    # Remove default loguru sink
    logger.remove()

    console_level = "DEBUG" if verbose else level

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
        backtrace=True,
        diagnose=False,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # Always capture everything (DEBUG and above) in the file
        logger.add(
            str(log_file),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
        )

    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")
