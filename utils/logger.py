"""
utils/logger.py
Simple logging wrapper for SmartScan
"""

import logging
import sys

ROOT_NAME = "smartscan"


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get a configured logger instance.

    Children of the root logger ("smartscan.<module>") get no handler of
    their own; they propagate to the root so each record prints once.

    Args:
        name: Logger name (usually module name)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if name.startswith(ROOT_NAME + "."):
        return logger

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    # Format: [LEVEL] message
    formatter = logging.Formatter(
        '%(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def set_level(level: int) -> None:
    """Change the level of the root SmartScan logger and its handlers."""
    log.setLevel(level)
    for handler in log.handlers:
        handler.setLevel(level)


# Default logger instance
log = get_logger(ROOT_NAME)


__all__ = ["get_logger", "set_level", "log"]
