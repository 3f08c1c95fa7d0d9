#!/usr/bin/env python3
"""
Centralized logging configuration for the fraud-report voice service.

Every module gets its logger through get_logger(__name__) so webhook,
store and ledger messages share one format and one set of handlers.
"""

import logging
import os
import sys
from typing import Optional


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_file_path: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (default: LOG_LEVEL env var, else INFO)
        format_string: Custom format string for log messages
        log_to_file: Whether to log to file in addition to console
            (default: True when LOG_FILE is set)
        log_file_path: Path to log file (default: LOG_FILE env var, else app.log)

    Returns:
        Configured root logger
    """
    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if log_file_path is None:
        log_file_path = os.getenv("LOG_FILE") or "app.log"
    if log_to_file is None:
        log_to_file = bool(os.getenv("LOG_FILE"))

    formatter = logging.Formatter(format_string)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Twilio's HTTP client logs full request bodies at INFO
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# Configure default logging when module is imported
setup_logging()
