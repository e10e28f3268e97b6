from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "viewmatch"
_FORMAT = "%(levelname)s %(name)s: %(message)s"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return LEVELS[str(level).lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level} (expected one of {sorted(LEVELS)})") from None


def configure_logging(level: str | int = "warning", stream=None) -> logging.Logger:
    """
    Route the package loggers to a single stream handler at `level`.

    Calling it again replaces the previous handler, so a run always gets exactly
    the verbosity it was configured with.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    lvl = parse_level(level)
    logger.setLevel(lvl)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(lvl)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
