"""
Centralized logging configuration for the raffle engine
Provides structured logging with proper formatting and levels
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
import os


def setup_logging(app_name='chama_raffle', log_level=None, log_file=None):
    """
    Setup application logging with console and optional file handlers

    Module loggers (chama_raffle.draw, chama_raffle.cycles, ...) are children
    of app_name and inherit these handlers.

    Args:
        app_name: Name of the application logger
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (enables file logging)

    Returns:
        logging.Logger: Configured logger instance
    """

    # Determine log level from environment or parameter
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)

    logger = logging.getLogger(app_name)
    logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            # Rotating file handler (10MB max, keep 5 backups)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(detailed_formatter)
            logger.addHandler(file_handler)

            logger.info(f"File logging enabled: {log_file}")
        except OSError as e:
            logger.error(f"Failed to setup file logging: {e}")

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def log_route_access(logger, route, method='GET', role=None):
    """Log route access with context"""
    context_str = f" [role={role}]" if role else ""
    logger.info(f"{method} {route}{context_str}")


def log_error(logger, error, context=None):
    """Log error with optional context"""
    if context:
        logger.error(f"{context}: {error}", exc_info=True)
    else:
        logger.error(str(error), exc_info=True)
