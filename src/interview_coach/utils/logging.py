"""
Logging utilities for the interview coach.
"""
import os
import logging


def setup_logging(log_file_path: str, level: str = "DEBUG") -> str:
    """
    Set up logging to file with minimal console output.

    Args:
        log_file_path: Full path to the log file
        level: Level for the file handler (name such as "INFO")

    Returns:
        Path to the log file
    """
    # Extract directory from log file path and create it
    workdir = os.path.dirname(log_file_path)
    if workdir:
        os.makedirs(workdir, exist_ok=True)

    # Clear any existing handlers
    logging.getLogger().handlers.clear()

    # File handler for detailed logs
    file_handler = logging.FileHandler(log_file_path, mode='w')
    file_handler.setLevel(getattr(logging, level.upper(), logging.DEBUG))
    file_formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s - %(message)s')
    file_handler.setFormatter(file_formatter)

    # Console handler for minimal output only
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.CRITICAL)
    console_formatter = logging.Formatter('%(message)s')
    console_handler.setFormatter(console_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return log_file_path
