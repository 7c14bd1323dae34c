"""
Error taxonomy for plugin operations.

Validation errors (InvalidPackage, InvalidVersion) are raised before any
process is started and reach the browser as ``{"status": "error"}``.
Launch, manifest and registry errors come from I/O and are reported either
synchronously (listing pages) or on the next status poll.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    INVALID_PACKAGE = "invalid_package"
    INVALID_VERSION = "invalid_version"
    LAUNCH_FAILURE = "launch_failure"
    MANIFEST_READ_FAILURE = "manifest_read_failure"
    REGISTRY_ERROR = "registry_error"


class ConsoleError(Exception):
    """Base class for errors reported to the console UI."""

    category: ErrorCategory
    status_code: int = 400

    def __init__(self, message: str, package_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.package_name = package_name

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": "error",
            "error": self.category.value,
            "message": self.message,
        }
        if self.package_name:
            payload["package"] = self.package_name
        return payload


class InvalidPackage(ConsoleError):
    category = ErrorCategory.INVALID_PACKAGE


class InvalidVersion(ConsoleError):
    category = ErrorCategory.INVALID_VERSION

    def __init__(
        self,
        message: str,
        package_name: Optional[str] = None,
        version: Optional[str] = None,
    ):
        super().__init__(message, package_name)
        self.version = version

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.version is not None:
            payload["version"] = self.version
        return payload


class LaunchFailure(ConsoleError):
    category = ErrorCategory.LAUNCH_FAILURE
    status_code = 500


class ManifestReadFailure(ConsoleError):
    category = ErrorCategory.MANIFEST_READ_FAILURE
    status_code = 500


class RegistryError(ConsoleError):
    category = ErrorCategory.REGISTRY_ERROR
    status_code = 502
