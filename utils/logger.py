import functools
import logging
import time
from typing import Optional

# Root namespace for every logger created by the navigation core.
LOGGER_NAMESPACE = "navcore"

# Niveau de log
LOG_LEVELS = {"NONE": logging.CRITICAL + 1, "BASIC": logging.INFO, "DETAILED": logging.DEBUG}
DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

_ROOT_LOGGER: Optional[logging.Logger] = None


def _root_logger() -> logging.Logger:
    """Return the shared namespace logger, installing its handler once."""

    global _ROOT_LOGGER
    if _ROOT_LOGGER is not None:
        return _ROOT_LOGGER

    logger = logging.getLogger(LOGGER_NAMESPACE)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(handler)
    if logger.level == logging.NOTSET:
        logger.setLevel(logging.WARNING)

    logger.propagate = True
    _ROOT_LOGGER = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the ``navcore`` namespace."""

    root = _root_logger()
    if name == LOGGER_NAMESPACE or name.startswith(LOGGER_NAMESPACE + "."):
        return logging.getLogger(name)
    return root.getChild(name)


def set_log_level(level: str) -> None:
    """Set the namespace level from a ``LOG_LEVELS`` key (NONE/BASIC/DETAILED)."""

    try:
        value = LOG_LEVELS[level.upper()]
    except KeyError as exc:
        raise ValueError(f"unknown log level '{level}', expected one of {sorted(LOG_LEVELS)}") from exc
    _root_logger().setLevel(value)


def log_calls(func):
    """Décorateur pour logger les appels de fonctions et mesurer leur temps d'exécution."""
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not logger.isEnabledFor(logging.DEBUG):
            return func(*args, **kwargs)

        logger.debug("Appel %s args=%r kwargs=%r", func.__qualname__, args, kwargs)
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start_time
        logger.debug("Retour %s: %r", func.__qualname__, result)
        logger.debug("Temps d'exécution %s: %.6f s", func.__qualname__, elapsed)
        return result

    return wrapper
