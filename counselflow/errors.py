"""
Shared service error types.

Raised by the service layer and translated to HTTP responses by the
exception handlers registered in ``counselflow.api``.
"""

from typing import Any, Optional


class ContractServiceError(Exception):
    """Base class for errors the API knows how to report."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(ContractServiceError):
    """Missing, invalid or expired credentials, or unknown/inactive user."""

    status_code = 401


class NotFoundError(ContractServiceError):
    """
    Target does not exist or the caller may not see it.

    Both cases produce the same status and message.
    """

    status_code = 404


class PersistenceError(ContractServiceError):
    """Database failure. The message is generic; the cause is only logged."""

    status_code = 500
