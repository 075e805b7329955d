"""
Validation utilities for DEFlow
"""

import importlib
import logging
import subprocess
import sys
from typing import Dict, Iterable, List, Optional, Type

import pandas as pd

from ..exceptions import DataQualityError, InvalidArgumentError

logger = logging.getLogger(__name__)

# Flag each external tool accepts to print its version
TOOL_VERSION_FLAGS = {
    "exiftool": "-ver",
    "qpdf": "--version",
}


def require_columns(
    df: pd.DataFrame, columns: Iterable[str], table_name: str = "table"
) -> None:
    """
    Raise DataQualityError if any of the columns is missing

    Args:
        df: Table to check
        columns: Required column names
        table_name: Name used in the error message
    """
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise DataQualityError(
            f"{table_name} is missing required columns: {', '.join(missing)}"
        )


def coerce_choice(value, enum_cls: Type, name: str):
    """
    Convert value to a member of enum_cls using exact matching only

    Args:
        value: Enum member or its exact string value
        enum_cls: Enum class whose values are strings
        name: Argument name used in the error message

    Returns:
        Enum member
    """
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value:
            return member
    raise InvalidArgumentError(name, value, [member.value for member in enum_cls])


def validate_python_packages(packages: List[str]) -> Dict[str, bool]:
    """
    Check if Python packages are importable

    Args:
        packages: List of import names

    Returns:
        Dictionary mapping package names to availability status
    """
    results = {}

    for package in packages:
        try:
            importlib.import_module(package)
            results[package] = True
            logger.debug(f"Package {package}: available")
        except ImportError:
            results[package] = False
            logger.debug(f"Package {package}: not available")

    return results


def validate_external_tools(tools: Optional[List[str]] = None) -> Dict[str, bool]:
    """
    Check if external command-line tools are available

    Args:
        tools: List of tool names (defaults to the PDF normalization tools)

    Returns:
        Dictionary mapping tool names to availability status
    """
    if tools is None:
        tools = list(TOOL_VERSION_FLAGS)

    results = {}

    for tool in tools:
        flag = TOOL_VERSION_FLAGS.get(tool, "--version")
        try:
            result = subprocess.run(
                [tool, flag], capture_output=True, text=True, timeout=10
            )
            results[tool] = result.returncode == 0
            if results[tool]:
                logger.debug(f"Tool {tool}: available")
            else:
                logger.debug(f"Tool {tool}: not working properly")
        except (subprocess.TimeoutExpired, FileNotFoundError):
            results[tool] = False
            logger.debug(f"Tool {tool}: not found")

    return results


def validate_environment() -> List[str]:
    """
    Comprehensive environment validation

    Returns:
        List of validation issues found
    """
    issues = []

    logger.info("Validating DEFlow environment...")

    if sys.version_info < (3, 9):
        issues.append(
            f"Python 3.9+ required, found {sys.version_info.major}.{sys.version_info.minor}"
        )

    core_packages = [
        "numpy",
        "pandas",
        "matplotlib",
        "seaborn",
        "gseapy",
        "statsmodels",
        "adjustText",
    ]

    package_status = validate_python_packages(core_packages)
    missing_packages = [
        pkg for pkg, available in package_status.items() if not available
    ]
    if missing_packages:
        issues.append(f"Missing Python packages: {', '.join(missing_packages)}")

    tool_status = validate_external_tools()
    missing_tools = [tool for tool, available in tool_status.items() if not available]
    if missing_tools:
        issues.append(f"Missing external tools: {', '.join(missing_tools)}")

    if issues:
        logger.warning(f"Environment validation found {len(issues)} issues")
        for issue in issues:
            logger.warning(f"  - {issue}")
    else:
        logger.info("Environment validation passed")

    return issues
