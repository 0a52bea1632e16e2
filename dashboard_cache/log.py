"""Logger factory."""

import logging
import sys

from .settings import settings

ROOT_LOGGER = "dashboard_cache"


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
        set_log_level(settings.log_level)
    return root


def set_log_level(level: str) -> None:
    """Apply `level` (e.g. ``"DEBUG"``) to every `dashboard_cache` logger."""
    logging.getLogger(ROOT_LOGGER).setLevel(getattr(logging, level.upper(), logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the `dashboard_cache.<name>` logger.

    The stderr handler and the level live on the package logger; children
    inherit both.
    """
    _root_logger()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
