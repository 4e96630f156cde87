import logging
import sys
from logging.handlers import RotatingFileHandler

from . import settings

# Libraries that log every HTTP request to the record store at INFO or DEBUG.
NOISY_LOGGERS = ("urllib3", "requests")


def setup_logger(name: str = "item_loans", log_level: int | str | None = None) -> logging.Logger:
    """
    Console output for the operator plus a rotating log file for later review
    of imports and statistics runs.

    The level defaults to `settings.LOG_LEVEL`. Calling this again for the same
    logger returns it unchanged.
    """
    logger = logging.getLogger(name)
    level = log_level if log_level is not None else settings.LOG_LEVEL
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        settings.LOG_DIR / settings.LOG_FILENAME,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
