"""Logging setup for horizonbench.

Configures a console handler whose level follows the CLI's verbosity
flags and an optional file handler that always logs at DEBUG, so that a
long auto-sampling session leaves a complete record behind.

WebDriver polling goes through ``requests``; urllib3's per-request
connection chatter is held at WARNING unless ``--verbose`` is given.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "horizonbench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_NOISY_LOGGERS = ("urllib3",)


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the root horizonbench logger.

    Args:
        verbose: Console logs at DEBUG, including HTTP traffic.
        quiet: Console logs at WARNING.  Ignored if *verbose* is True.
        log_file: If provided, also log everything at DEBUG to this path.

    Returns:
        The configured root logger for horizonbench.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    # Reconfiguring replaces the handlers from any earlier call.
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(_console_level(verbose, quiet))
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the horizonbench namespace."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
