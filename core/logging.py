import logging

from core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> logging.Logger:
    """Configure the root handler once and return the application logger"""
    level = level or settings.log_level
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(level)
    app_logger = logging.getLogger("competition")
    app_logger.setLevel(level)
    return app_logger


logger = logging.getLogger("competition")
