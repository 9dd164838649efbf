"""Custom exception classes for the prompt log service."""

from typing import Any, List, Optional


class PromptLogError(Exception):
    """Base exception for the prompt log service."""

    status_code = 400

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(PromptLogError):
    """Raised when input validation fails."""

    def __init__(self, message: str = "Validation failed", errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class AuthenticationError(PromptLogError):
    """Raised when sign-in with the identity provider fails."""
    status_code = 401


class AuthorizationError(PromptLogError):
    """Raised when a request lacks the session an operation needs."""
    status_code = 401


class ResourceNotFoundError(PromptLogError):
    """Raised when a requested resource is not found."""
    status_code = 404


class ResourceConflictError(PromptLogError):
    """Raised when a resource already exists for someone else."""
    status_code = 409


class OAuthConfigurationError(PromptLogError):
    """Raised when the OAuth endpoints are hit without a configured provider."""
    status_code = 400


class StorageError(PromptLogError):
    """Raised when the storage backend is unavailable or a query fails."""
    status_code = 500

    def __init__(self, message: str = "Storage backend error"):
        super().__init__(message)
