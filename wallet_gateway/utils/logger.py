import os
import sys
from typing import Optional

from loguru import logger

TEXT_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"


def setup_logging(log_level: str = "INFO", log_format: str = "text", log_file: Optional[str] = None):
    logger.remove() # Remove default handler

    if log_format == "json":
        logger.add(
            sys.stderr,
            level=log_level,
            format="{message}",
            serialize=True,
            enqueue=True # Use a queue for non-blocking logging
        )
    else:
        logger.add(sys.stderr, level=log_level, format=TEXT_FORMAT, enqueue=True)
        if log_format != "text":
            logger.warning(f"Unknown log format '{log_format}'. Falling back to default text format.")

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB", # Rotate file every 10 MB
            compression="zip", # Compress old log files
            level=log_level,
            format="{message}" if log_format == "json" else TEXT_FORMAT,
            serialize=log_format == "json",
            enqueue=True
        )

    return logger
