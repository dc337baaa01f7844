"""Logging setup for the gateway process."""

import logging

LOGGER_NAME = "tracechain_gateway"
LOG_FORMAT = "%(levelname)s: %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach one stream handler to the gateway logger and set its level.

    ``level`` is a number or a level name such as ``"debug"``. Repeated calls
    only adjust the level, so the app factory and the entrypoint can both
    call this.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
