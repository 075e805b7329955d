"""
Utility functions for DEFlow
"""

from .logging import get_logger, log_execution_time, setup_logging
from .validation import (coerce_choice, require_columns,
                         validate_environment, validate_external_tools,
                         validate_python_packages)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_execution_time",
    "coerce_choice",
    "require_columns",
    "validate_environment",
    "validate_external_tools",
    "validate_python_packages",
]
