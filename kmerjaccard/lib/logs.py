"""Logging configuration for kmerjaccard."""

import logging
import sys

LOGGER_NAME = "kmerjaccard"


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Args:
        verbose: Report progress (INFO level)
        debug: Report per-batch details (DEBUG level); implies verbose

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logger.setLevel(level)

    # Calling twice (tests, repeated main()) must not duplicate output
    for handler in list(logger.handlers):
        if getattr(handler, "_kmerjaccard", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if debug:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s")
        )
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handler._kmerjaccard = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
