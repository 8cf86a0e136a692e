"""Process-wide logging setup shared by services and controllers."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from backend.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler on first use.

    A later call with an explicit, different level only adjusts the root
    logger level; handlers are never duplicated.
    """

    global _configured_level
    resolved_level = (level or get_settings().log_level).upper()

    if _configured_level is None:
        logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
        _configured_level = resolved_level
        return

    if level is not None and resolved_level != _configured_level:
        logging.getLogger().setLevel(resolved_level)
        _configured_level = resolved_level


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root handler if needed."""
    configure_logging()
    return logging.getLogger(name)
