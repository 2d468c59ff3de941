"""Logging utilities."""

import logging

from songprint.config import LoggingConfig


def setup_logging(config: LoggingConfig, verbosity: int = 0) -> None:
    """Setup application logging.

    Args:
        config: Logging configuration
        verbosity: Net count of -v flags minus -q flags from the command line.
            Positive values force DEBUG, negative values force WARNING.
    """
    level = getattr(logging, config.level.upper())
    if verbosity > 0:
        level = logging.DEBUG
    elif verbosity < 0:
        level = logging.WARNING

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
