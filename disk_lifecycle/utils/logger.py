"""
Disk Lifecycle - Logging Setup

Logging Strategy:
- INFO (default): High-level progress for operators
- DEBUG (--verbosity=debug): API calls, poll results, state changes
- WARNING: Retries and other recoverable issues
- ERROR: Problems that stop a workflow run
"""

import logging
import sys
from pathlib import Path
from typing import Any

LOGGER_NAME = 'disk_lifecycle'


class CleanFormatter(logging.Formatter):
    """
    Custom formatter for clean user-facing logs.

    - INFO: Just the message (clean)
    - WARNING/ERROR/CRITICAL: Show level prefix
    """

    def format(self, record):
        """Format log record based on level."""

        if record.levelno == logging.INFO:
            return record.getMessage()
        elif record.levelno == logging.WARNING:
            return f"[!]  WARNING: {record.getMessage()}"
        elif record.levelno == logging.ERROR:
            return f"[X] ERROR: {record.getMessage()}"
        elif record.levelno == logging.CRITICAL:
            return f"[!!] CRITICAL: {record.getMessage()}"
        else:
            return f"[DEBUG] {record.getMessage()}"


def setup_logging(level='INFO', log_file=None, debug=False, stream=None):
    """
    Setup logging for the disk lifecycle tool.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If None, only logs to console.
        debug: If True, use DEBUG level and detailed format
        stream: Console stream (default: stderr, so stdout stays parseable)

    Returns:
        logging.Logger: Configured logger instance

    Example:
        logger = setup_logging('INFO')
        logger.info("Creating disk...")
    """

    if debug:
        level = 'DEBUG'

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Remove existing handlers (in case setup_logging called multiple times)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(numeric_level)

    if debug:
        # Format: [2025-11-02 10:30:45] DEBUG [execute:45]: API call: disks.insert(...)
        console_format = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(funcName)s:%(lineno)d]: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        console_format = CleanFormatter('%(message)s')

    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

        logger.debug(f"Logging to file: {log_file}")

    return logger


def get_logger():
    """
    Get the disk lifecycle logger instance.

    Returns:
        logging.Logger: Logger instance
    """
    return logging.getLogger(LOGGER_NAME)


def log_api_call(logger, method_name: str, **params):
    """
    Log an API call (DEBUG level).

    Example:
        log_api_call(logger, 'disks.get', zone='us-central1-a', disk='data-1')
        # Output: API call: disks.get(zone=us-central1-a, disk=data-1)
    """
    param_str = ', '.join(f'{k}={v}' for k, v in params.items())
    logger.debug(f"API call: {method_name}({param_str})")


def log_api_response(logger, response: Any, truncate: int = 200):
    """
    Log an API response (DEBUG level), truncated to `truncate` characters.
    """
    response_str = str(response)
    if len(response_str) > truncate:
        response_str = response_str[:truncate] + '...'
    logger.debug(f"API response: {response_str}")


def log_state_change(logger, resource: str, old_state: str, new_state: str):
    """
    Log a state change (DEBUG level).

    Example:
        log_state_change(logger, 'step attach', 'not_started', 'running')
        # Output: State change: step attach: not_started -> running
    """
    logger.debug(f"State change: {resource}: {old_state} -> {new_state}")


def print_header(logger, title: str, char='=', length=60):
    """
    Print a formatted header (INFO level).

    Example:
        print_header(logger, 'Disk Lifecycle - Run')
        # Output:
        # ============================================================
        # Disk Lifecycle - Run
        # ============================================================
    """
    logger.info(char * length)
    logger.info(title)
    logger.info(char * length)
