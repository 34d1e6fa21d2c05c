"""
Centralized logging for the calibration database editor.

Both the backend (``api``) and the UI-side core (``client``) log through
Python's built-in logging module using the same format.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Dataset opened from %s", path)
    logger.warning("Command %s failed: %s", name, err)
"""

import logging
import sys

_configured = False

# httpx logs every request at INFO; the command channel sends many
_CHATTY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the editor process.

    Call once at startup (main.py). Subsequent calls are no-ops.
    Transport loggers stay at WARNING unless ``level`` is DEBUG.
    """
    global _configured
    if _configured:
        return

    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    if resolved > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for one module of the editor.

    Args:
        name: Module name (typically ``__name__``), e.g. ``api.store.canonical``
              or ``client.session``.
    """
    return logging.getLogger(name)
