"""Logging setup for applications embedding Toolbench."""

import logging

from toolbench.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging with the standard Toolbench format.

    Args:
        level: Log level name; defaults to Settings.log_level
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
