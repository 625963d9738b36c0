"""
Logging configuration for the diagnostic debate engine.
"""

import logging
import os
import sys
from pathlib import Path

QUIET_LIBRARIES = ("httpx", "httpcore", "openai")


def setup_logging(
    level: str = None,
    log_file: str = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL or INFO.
        log_file: Optional file path to also write logs to.

    Returns:
        The configured "dxdebate" logger
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    level_num = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("dxdebate")
    logger.setLevel(level_num)
    logger.handlers = []

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level_num)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # The HTTP stack logs every request at INFO
    for noisy in QUIET_LIBRARIES:
        logging.getLogger(noisy).setLevel(max(level_num, logging.WARNING))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level_num)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """Logger under the "dxdebate" namespace."""
    if name:
        return logging.getLogger(f"dxdebate.{name}")
    return logging.getLogger("dxdebate")
