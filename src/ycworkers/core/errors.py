"""Error handling module for yc-workers.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "PROVISIONING_FAILED",
        "message": "Quota exceeded"
    }
}

Usage:
    from ycworkers.core.errors import CredentialError, ProvisioningError

    # Raise with default message
    raise CredentialError()

    # Raise with the provider's message
    raise ProvisioningError(operation.error.message)
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    PROVISIONING_FAILED = "PROVISIONING_FAILED"
    CREDENTIAL_UNAVAILABLE = "CREDENTIAL_UNAVAILABLE"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    LAUNCH_FAILED = "LAUNCH_FAILED"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    WORKER_CONFLICT = "WORKER_CONFLICT"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class YcWorkersError(Exception):
    """Base exception for yc-workers.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class ProvisioningError(YcWorkersError):
    """502 - A provisioning call could not be completed.

    When raised for a failed create operation, message is the provider's
    error message verbatim.
    """

    def __init__(
        self,
        message: str = "Provisioning failed",
        code: ErrorCode = ErrorCode.PROVISIONING_FAILED,
        status_code: int = 502,
    ) -> None:
        super().__init__(code, message, status_code)


class CredentialError(ProvisioningError):
    """503 - No signing key could be resolved; no instance was touched."""

    def __init__(self, message: str = "Failed to resolve SSH signing key") -> None:
        super().__init__(message, ErrorCode.CREDENTIAL_UNAVAILABLE, 503)


class CloudGatewayError(YcWorkersError):
    """502 - The cloud provider rejected or failed a call."""

    def __init__(
        self,
        message: str = "Cloud provider error",
        code: ErrorCode = ErrorCode.GATEWAY_ERROR,
        status_code: int = 502,
    ) -> None:
        super().__init__(code, message, status_code)


class TransientGatewayError(CloudGatewayError):
    """503 - The cloud provider was unreachable after transport retries."""

    def __init__(self, message: str = "Cloud provider unavailable") -> None:
        super().__init__(message, ErrorCode.GATEWAY_UNAVAILABLE, 503)


class LaunchFailure(YcWorkersError):
    """502 - The agent handshake with a worker failed."""

    def __init__(self, message: str = "Agent failed to connect") -> None:
        super().__init__(ErrorCode.LAUNCH_FAILED, message, 502)


class ConfigurationError(YcWorkersError):
    """422 - Template or worker configuration is invalid."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
        status_code: int = 422,
    ) -> None:
        super().__init__(code, message, status_code)


class WorkerConflictError(ConfigurationError):
    """409 - A worker with the same name is bound to another instance."""

    def __init__(self, message: str = "Worker name already registered") -> None:
        super().__init__(message, ErrorCode.WORKER_CONFLICT, 409)


class TemplateNotFoundError(YcWorkersError):
    """404 - No template with the requested name is configured."""

    def __init__(self, message: str = "Template not found") -> None:
        super().__init__(ErrorCode.TEMPLATE_NOT_FOUND, message, 404)
