"""Centralized logging configuration."""

import logging
import sys

from lab_interpreter.config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logger = logging.getLogger("lab_interpreter")
    logger.setLevel(level)

    # Prevent duplicate handlers on reload
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console_handler)

    logger.debug(f"Logging configured with level: {logging.getLevelName(level)}")

    return logger


class RecordLogger(logging.LoggerAdapter):
    """Prefixes every message with the interpretation record it concerns."""

    def process(self, msg, kwargs):
        return f"[interpretation {self.extra['record_id']}] {msg}", kwargs


def record_logger(record_id: str) -> RecordLogger:
    """Logger adapter bound to one interpretation record."""
    return RecordLogger(logger, {"record_id": record_id})


# Create the global logger instance
logger = setup_logging()
