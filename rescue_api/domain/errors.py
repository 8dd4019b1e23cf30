# SPDX-License-Identifier: Apache-2.0

"""
Application exception hierarchy.

Every exception carries the HTTP status and problem type it is rendered
with by the error handler middleware.
"""

from typing import Any, Dict, List, Optional


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for validation errors."""

    def __init__(self, message: str, validation_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []

    @classmethod
    def from_pydantic(cls, error, message: str = "Request validation failed") -> 'ValidationException':
        """
        Convert a pydantic ValidationError into a ValidationException.

        Args:
            error: pydantic.ValidationError instance
            message: Summary message

        Returns:
            ValidationException listing each failing field
        """
        validation_errors = [
            {
                "field": ".".join(str(part) for part in item.get("loc", ())),
                "message": item.get("msg", ""),
                "type": item.get("type", "")
            }
            for item in error.errors()
        ]
        return cls(message, validation_errors)


class AuthenticationException(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Exception for authorization errors."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class AccountNotApprovedException(AuthorizationException):
    """Login refused because a gated account is not verified."""

    PENDING = "verification_pending"
    REJECTED = "verification_rejected"
    REQUIRED = "verification_required"

    def __init__(self, message: str, reason_code: str, rejection_reason: Optional[str] = None):
        super().__init__(message)
        self.error_type = "account-not-approved"
        self.reason_code = reason_code
        self.rejection_reason = rejection_reason


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictException(CustomException):
    """Exception for illegal transitions and duplicate resources."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class ServiceUnavailableException(CustomException):
    """Exception for service unavailable errors."""

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


class CollaboratorException(Exception):
    """
    A best-effort collaborator call (email, event broadcast, upload) failed.

    Raised by collaborator adapters. The notification dispatcher logs and
    swallows it; it never unwinds a committed transition.
    """

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.message = message
