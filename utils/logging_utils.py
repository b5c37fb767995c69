import logging
import os
import sys

_LOGGER_NAME = "publist"
_DEFAULT_LEVEL = os.getenv("PUBLIST_LOG_LEVEL", "INFO").upper()


def _build_handler():
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str | None = None) -> logging.Logger:
    logger_name = _LOGGER_NAME if not name else f"{_LOGGER_NAME}.{name}"
    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        logger.addHandler(_build_handler())
    logger.setLevel(_DEFAULT_LEVEL)
    logger.propagate = False
    return logger


def log_exception(context: str, exc: Exception, logger: logging.Logger | None = None):
    """Log an error under a dotted event key with its AppError code and detail.

    Inside an except block the traceback is attached.
    """
    active_logger = logger or get_logger()
    active_logger.error(
        "%s | %s[%s]: %s | detail=%s",
        context,
        exc.__class__.__name__,
        getattr(exc, "code", "-"),
        exc,
        getattr(exc, "detail", None),
        exc_info=sys.exc_info()[0] is not None,
    )
