"""Custom exception hierarchy."""

from typing import List, Optional


class AppError(Exception):
    """Base exception for application errors."""

    code = "APP_ERROR"

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    code = "API_CLIENT_ERROR"


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    code = "DATABASE_ERROR"


class ValidationError(AppError):
    """Raised when input validation fails."""
    code = "VALIDATION_ERROR"


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    code = "CONFIGURATION_ERROR"


class TemplateNotConfiguredError(ConfigurationError):
    """Raised when a document subtype has no vendor template id."""
    code = "TEMPLATE_NOT_CONFIGURED"

    def __init__(self, subtype: str, env_var: str):
        super().__init__(
            f"PDF template not configured for {subtype}. Missing: {env_var}"
        )
        self.subtype = subtype
        self.env_var = env_var


class DocumentGenerationError(APIClientError):
    """Raised when the rendering vendor produced no document."""
    code = "GENERATION_FAILED"


class InvariantError(AppError):
    """Raised when a request fails its approval invariants.

    Attributes:
        code: Coarse classification of the first violation
            (PAYMENT_REQUIRED, INVALID_STATUS, TEMPORARY_URL, DOCUMENT_MISSING)
        details: Every error message produced by the check
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = list(details or [])

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class DocumentNotFoundError(AppError):
    """Raised when a request has no generated document."""
    code = "DOCUMENT_MISSING"
