"""
Error taxonomy for the Persona people-search backend.

Every error raised across a module boundary derives from PersonaError so the
API layer can map it to a response in one place. Category-level provider
failures are contained by the search orchestrator; everything else
propagates to the caller.
"""

from typing import Optional


class PersonaError(Exception):
    """Base class for all application errors.

    Attributes:
        code: Error code for programmatic handling
        suggestion: Optional hint on how to recover
    """
    code = "PERSONA_ERROR"

    def __init__(self, message: str, suggestion: str = ""):
        self.suggestion = suggestion
        super().__init__(message)


class ValidationError(PersonaError, ValueError):
    """Raised for missing or malformed caller input. Never retried."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = "unknown", suggestion: str = ""):
        self.field = field
        super().__init__(message, suggestion)


class AuthRequiredError(PersonaError):
    """Raised when a remote-mode operation runs without a bound identity."""
    code = "AUTH_REQUIRED"

    def __init__(self, message: str = "User must be authenticated for this operation"):
        super().__init__(message, suggestion="Sign in or enable guest mode.")


class ProviderError(PersonaError):
    """Raised when one data-provider category fetch fails.

    Recovered by the search orchestrator, which substitutes an empty value
    for the category.
    """
    code = "PROVIDER_ERROR"

    def __init__(self, message: str, category: Optional[str] = None, status_code: Optional[int] = None):
        self.category = category
        self.status_code = status_code
        super().__init__(message)


class NormalizationError(ProviderError):
    """Raised when a provider payload is neither a JSON object nor an array."""
    code = "NORMALIZATION_ERROR"


class StorageError(PersonaError):
    """Raised when persisting or reading state fails."""
    code = "STORAGE_ERROR"


class StorageFullError(StorageError):
    """Raised when the local store medium rejects a write for capacity."""
    code = "STORAGE_FULL"

    def __init__(self, message: str = "Local storage is full"):
        super().__init__(
            message,
            suggestion="Clear some saved searches or sign in to save to the cloud.",
        )


class NotFoundError(StorageError):
    """Raised when a record looked up by id does not exist for the owner."""
    code = "NOT_FOUND"
