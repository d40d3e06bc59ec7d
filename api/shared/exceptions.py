"""Shared exceptions for the chat API."""
from typing import Any, Dict, Optional


class ChatAppException(Exception):
    """Base exception for the chat API."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ChatAppException):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(ChatAppException):
    """Raised when a resource is not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any, error_code: str = "NOT_FOUND"):
        message = f"{resource} not found"
        super().__init__(message, error_code, {"resource": resource, "identifier": str(identifier)})


class InvalidIdentifierError(ValidationError):
    """Raised when a path or body identifier is not a positive integer."""

    def __init__(self, resource: str, raw_value: Any):
        super().__init__(
            f"Invalid {resource} ID",
            {"resource": resource, "value": str(raw_value)},
        )
