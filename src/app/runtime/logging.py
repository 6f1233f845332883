"""Log sink configuration."""

from __future__ import annotations

import sys

from loguru import logger

from src.app.runtime.config.config_data import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Replace loguru's default sink with one stderr sink at the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=config.level.upper(),
        serialize=config.json_logs,
        backtrace=False,
        diagnose=False,
    )
    logger.debug(f"Logging configured at level {config.level.upper()}")
