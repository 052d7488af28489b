"""
Custom exceptions for the builder app.
"""
from typing import Iterable


class BuilderError(Exception):
    """Base exception for builder app."""
    pass


class ConfigurationError(BuilderError):
    """Raised when required Supabase settings are missing."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing Supabase environment variables: " + ", ".join(self.missing)
        )


class AuthError(BuilderError):
    """Raised when the auth backend rejects a request."""
    pass


class NotAuthenticatedError(BuilderError):
    """Raised when an action needs a signed-in user and there is none."""
    pass


class AutomationNotFoundError(BuilderError):
    """Raised when an automation does not exist or belongs to someone else."""

    def __init__(self, message: str = "Automation not found or unauthorized"):
        super().__init__(message)


class BackendError(BuilderError):
    """Raised when the database backend returns an error."""
    pass


class ValidationError(BuilderError):
    """Raised when action input is rejected before reaching the backend."""
    pass
