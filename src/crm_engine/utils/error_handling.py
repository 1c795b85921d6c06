"""Custom exceptions and helpers for consistent error payloads."""

from typing import Any, Dict


class EngineError(Exception):
    """Base class for decision engine errors."""

    def __init__(self, message: str, code: str = "engine_error"):
        super().__init__(message)
        self.code = code


class ConfigurationError(EngineError):
    """Raised when injected settings cannot produce a coherent model."""

    def __init__(self, message: str = "Invalid engine configuration"):
        super().__init__(message, code="configuration_error")


class ValidationError(EngineError):
    """Raised when caller input is not a usable shape."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, code="validation_error")


class NotFoundError(EngineError):
    """Raised when a requested action or record is missing."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code="not_found")


class ConsentViolationError(EngineError):
    """Raised when a marketing channel is used without live consent."""

    def __init__(self, message: str = "Marketing consent required"):
        super().__init__(message, code="consent_required")


def to_payload(error: EngineError) -> Dict[str, Any]:
    """Convert an EngineError into a plain dict for UI collaborators."""
    return {
        "status": "error",
        "code": error.code,
        "message": str(error),
    }
