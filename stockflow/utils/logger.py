"""
Logging configuration
"""
import logging
import sys
from stockflow.config import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = settings.DEBUG) -> logging.Logger:
    """Attach a stdout handler to the package logger; modules log via getLogger(__name__)"""
    logger = logging.getLogger("stockflow")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    # SQL echo is controlled by the engine; keep the pool quiet otherwise
    logging.getLogger("sqlalchemy.pool").setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the configured package logger"""
    configure_logging()
    return logging.getLogger(name)
