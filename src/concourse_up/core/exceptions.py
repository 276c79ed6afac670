"""Custom exceptions for concourse-up."""

from typing import Any


class ConcourseUpError(Exception):
    """Base exception for all concourse-up errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(ConcourseUpError):
    """Tool configuration errors."""


class ConfigConflictError(ConcourseUpError):
    """The requested deploy conflicts with the existing deployment."""


class AWSError(ConcourseUpError):
    """AWS API errors."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.service = service
        self.operation = operation


class AuthenticationError(ConcourseUpError):
    """Authentication/authorization errors."""


class StorageError(ConcourseUpError):
    """Configuration store read/write errors."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.key = key


class TerraformError(ConcourseUpError):
    """Terraform execution errors."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.command = command


class MetadataError(ConcourseUpError):
    """Terraform output is missing required values."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.missing = missing or []


class BoshError(ConcourseUpError):
    """BOSH deploy errors.

    Carries whatever director state and credentials existed when the
    deploy failed so callers can still persist them.
    """

    def __init__(
        self,
        message: str,
        state: bytes | None = None,
        creds: bytes | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.state = state
        self.creds = creds


class FlyError(ConcourseUpError):
    """Concourse / fly errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class CertificateError(ConcourseUpError):
    """Certificate generation errors."""


class NetworkError(ConcourseUpError):
    """Network lookup errors."""
