# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Exception Hierarchy

Exception Hierarchy:
    StrataError (base)
    ├── ConfigParseError
    │   └── DuplicateFilterIdError
    ├── ToolError
    │   ├── ToolNotFoundError
    │   └── ExternalToolError
    ├── InstallError
    │   ├── DependencyInstallError
    │   └── DownloadError
    ├── RunError
    │   ├── SafeModeViolation
    │   ├── NotInstalledError
    │   ├── SubprocessExecutionError
    │   └── FilterRunError
    └── ManifestReadError
"""

import logging
import traceback
from typing import Any, Dict, Optional

# ============================================================================
# Base Exceptions
# ============================================================================


class StrataError(Exception):
    """Base exception for all Strata errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        result = {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

        if self.hint:
            result["hint"] = self.hint

        if self.cause:
            result["cause"] = {
                "type": self.cause.__class__.__name__,
                "message": str(self.cause),
            }

        return result

    def __str__(self):
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.cause:
            base += f" | Caused by: {self.cause}"
        return base


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigParseError(StrataError):
    """Filter configuration could not be parsed"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        filter_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.filter_id = filter_id

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "field": self.field,
                "filter_id": self.filter_id,
            }
        )
        return result


class DuplicateFilterIdError(ConfigParseError):
    """Two directly configured filters share the same id"""


# ============================================================================
# External Tool Errors
# ============================================================================


class ToolError(StrataError):
    """External tool related errors"""

    def __init__(self, message: str, tool: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.tool = tool

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["tool"] = self.tool
        return result


class ToolNotFoundError(ToolError):
    """Required executable is not available on PATH"""


class ExternalToolError(ToolError):
    """External tool was found but failed to run"""


# ============================================================================
# Install Errors
# ============================================================================


class InstallError(StrataError):
    """Errors raised while installing filters"""

    def __init__(self, message: str, filter_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.filter_id = filter_id

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["filter_id"] = self.filter_id
        return result


class DependencyInstallError(InstallError):
    """Filter dependencies could not be installed"""


class DownloadError(InstallError):
    """Remote filter could not be downloaded"""


# ============================================================================
# Run Errors
# ============================================================================


class RunError(StrataError):
    """Errors raised while running filters"""

    def __init__(self, message: str, filter_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.filter_id = filter_id

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["filter_id"] = self.filter_id
        return result


class SafeModeViolation(RunError):
    """Untrusted remote filter was run while safe mode is on"""


class NotInstalledError(RunError):
    """Remote filter is not present in the cache"""


class SubprocessExecutionError(RunError):
    """Child process exited with a non-zero status or could not start"""

    def __init__(self, message: str, returncode: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.returncode = returncode

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["returncode"] = self.returncode
        return result


class FilterRunError(RunError):
    """User-facing wrapper naming the filter that failed"""

    def __init__(self, message: str, filter_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.filter_name = filter_name

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["filter_name"] = self.filter_name
        return result


# ============================================================================
# Manifest Errors
# ============================================================================


class ManifestReadError(StrataError):
    """Remote filter manifest is missing or malformed"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["path"] = self.path
        return result


# ============================================================================
# Error Handler
# ============================================================================


class ErrorHandler:
    """Centralized error reporting"""

    @staticmethod
    def report(error: Exception) -> Dict[str, Any]:
        """
        Log an error for the user and return its dictionary form.

        The short message and hint go to ERROR, the full chain of causes
        goes to DEBUG.
        """
        logger = logging.getLogger("strata.error_handler")

        if isinstance(error, StrataError):
            strata_error = error
        else:
            strata_error = StrataError(message=str(error), cause=error)

        error_dict = strata_error.to_dict()
        logger.error(strata_error.message)
        if strata_error.hint:
            logger.error(f"Hint: {strata_error.hint}")

        cause = strata_error.cause
        while cause is not None:
            logger.debug(f"Caused by {cause.__class__.__name__}: {cause}")
            cause = getattr(cause, "cause", None)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Stack trace:\n{traceback.format_exc()}")

        return error_dict
