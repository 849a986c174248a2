"""Custom exceptions for the MedFeed API.

Defines specific exception types for better error handling and reporting.
Each type carries the HTTP status code it is reported with.
"""

from typing import Any, Dict, Optional


class MedFeedException(Exception):
    """Base exception for MedFeed errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ValidationError(MedFeedException):
    """Raised when input is missing or malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


class AuthError(MedFeedException):
    """Raised when the caller has no valid session."""

    def __init__(
        self,
        message: str = "User not authenticated",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=401, details=details)


class NotFoundError(MedFeedException):
    """Raised when an entity does not exist."""

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        message = f"{entity} not found"
        super().__init__(
            message=message,
            status_code=404,
            details={"entity": entity, "id": entity_id} if entity_id else {"entity": entity},
        )


class InternalError(MedFeedException):
    """Raised when a store call or other internal step fails."""

    def __init__(self, operation: str, error: Exception):
        message = f"Failed to {operation}: {str(error)}"
        super().__init__(
            message=message,
            status_code=500,
            details={
                "operation": operation,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
