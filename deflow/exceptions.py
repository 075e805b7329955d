"""
Exception hierarchy for DEFlow
"""

from typing import Iterable, Optional


class DEFlowError(Exception):
    """Base class for all DEFlow errors"""


class InvalidArgumentError(DEFlowError, ValueError):
    """Raised when an argument is not one of the accepted values"""

    def __init__(self, name: str, value, valid: Optional[Iterable[str]] = None):
        self.name = name
        self.value = value
        self.valid = list(valid) if valid is not None else []

        message = f"Invalid {name}: {value!r}."
        if self.valid:
            message += " Choose one of: " + ", ".join(f"'{v}'" for v in self.valid)
        super().__init__(message)


class DataQualityError(DEFlowError):
    """Raised when input tables are missing required columns or values"""


class ExternalToolError(DEFlowError):
    """Raised when an external command-line tool is missing or fails"""

    def __init__(
        self,
        tool: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr

        if returncode is None:
            message = f"External tool '{tool}' not found on PATH"
        else:
            message = f"External tool '{tool}' exited with status {returncode}"
            if stderr:
                message += f": {stderr.strip()}"
        super().__init__(message)


class ConfigurationError(DEFlowError):
    """Raised for unreadable or invalid configuration files"""


class DEFlowWarning(UserWarning):
    """Warning category for recoverable data problems"""
