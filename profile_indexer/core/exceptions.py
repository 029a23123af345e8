"""Custom exception hierarchy."""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Shape persisted into ModuleRun/FlowRun error_json."""
        payload = {"type": self.__class__.__name__, "message": self.message}
        if self.original_error is not None:
            payload["cause"] = str(self.original_error)
        return payload


class NotFoundError(AppError):
    """Raised when a referenced project, person, document or run is missing."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails (e.g. a required input-config field)."""
    pass


class ConflictError(AppError):
    """Raised when a unique-constraint race cannot be resolved by re-fetching."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class ExternalProviderError(AppError):
    """Raised when an AI, scrape or search provider call fails."""

    def __init__(self, message: str, original_error: Exception = None, status_code: Optional[int] = None):
        super().__init__(message, original_error)
        self.status_code = status_code


class ProviderTimeoutError(ExternalProviderError):
    """Raised when a provider call or a polled provider job times out."""
    pass


class PartialBatchFailure(AppError):
    """Raised when some items of a batch failed while others succeeded."""

    def __init__(self, message: str, failures: List[Dict[str, Any]]):
        super().__init__(message)
        self.failures = failures

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["failures"] = self.failures
        return payload


def error_to_json(error: BaseException) -> Dict[str, Any]:
    """Serialize any exception into the error_json shape."""
    if isinstance(error, AppError):
        return error.to_dict()
    return {"type": error.__class__.__name__, "message": str(error)}
