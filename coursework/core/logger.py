import logging

from coursework.core.config import settings

ROOT = "coursework"


def setup_logging() -> logging.Logger:
    """Attach one console handler to the package logger; safe to call again."""
    logger = logging.getLogger(ROOT)
    logger.setLevel(settings.LOG_LEVEL.upper())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s | %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT}.{name}")
