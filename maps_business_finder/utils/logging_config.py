"""
logging_config.py - Logging configuration
----------------------------------------
Configure logging for the Maps business finder.
"""
import io
import logging
import os
import sys

LOGGER_NAME = "maps_business_finder"

# Arrow symbol for logging
ARROW = "->"


def get_logger(logger=None):
    """Return ``logger`` if given, otherwise the package logger."""
    return logger if logger is not None else logging.getLogger(LOGGER_NAME)


def setup_logging(log_file=None, debug=False):
    """
    Set up logging for the Maps business finder.

    Args:
        log_file: Optional log file path
        debug: Enable debug logging

    Returns:
        Logger instance
    """
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter('[%(asctime)s] %(levelname)-8s – %(message)s',
                                  datefmt='%Y-%m-%d %H:%M:%S')

    # Windows consoles need an explicit UTF-8 stream for non-English names
    if sys.platform == 'win32':
        utf8_stream = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='backslashreplace')
        console_handler = logging.StreamHandler(utf8_stream)
    else:
        console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(formatter)
            file_handler.setLevel(level)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning("Failed to create log file %s: %s", log_file, e)

    # Selenium and urllib3 are very chatty at DEBUG
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logger
