"""
Logging utilities for DEFlow
"""

import functools
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Union

import colorlog


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    format_string: Optional[str] = None,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Set up logging for DEFlow

    Args:
        level: Logging level (INFO, DEBUG, etc.)
        log_file: Optional file to write logs to
        format_string: Custom format string
        use_colors: Whether to use colored output for console

    Returns:
        Configured package logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if use_colors:
        console_handler = colorlog.StreamHandler(sys.stdout)
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s" + format_string,
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_formatter = logging.Formatter(
            format_string, datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(
            logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")
        )
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)

    deflow_logger = logging.getLogger("deflow")
    deflow_logger.setLevel(level)

    # gseapy and matplotlib are chatty at INFO
    logging.getLogger("matplotlib").setLevel(max(level, logging.WARNING))
    logging.getLogger("gseapy").setLevel(max(level, logging.WARNING))

    return deflow_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the deflow namespace"""
    if name == "deflow" or name.startswith("deflow."):
        return logging.getLogger(name)
    return logging.getLogger(f"deflow.{name}")


def log_execution_time(func):
    """Decorator to log execution time of functions"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.time()

        try:
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time
            logger.info(f"{func.__name__} completed in {execution_time:.2f} seconds")
            return result
        except Exception as e:
            execution_time = time.time() - start_time
            logger.error(
                f"{func.__name__} failed after {execution_time:.2f} seconds: {e}"
            )
            raise

    return wrapper
