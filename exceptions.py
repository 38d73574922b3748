from typing import Optional


class HireBotException(Exception):
    """Base exception for the hiring bot."""
    pass

class ConfigurationError(HireBotException):
    """Raised when required configuration is missing at startup."""
    pass

class ParseError(HireBotException):
    """Raised when a /hire message cannot be turned into an offer."""
    pass

class ValidationException(HireBotException):
    """Raised when user input validation fails."""
    pass

class WorkflowStateError(HireBotException):
    """Raised when an offer transition is not allowed or its payload is invalid."""
    pass

class NotFoundError(HireBotException):
    """Raised when a handle or record lookup finds nothing."""
    pass

class ServiceError(HireBotException):
    """Base class for failures talking to an external service."""
    pass

class TransientServiceError(ServiceError):
    """Rate limits, timeouts and 5xx responses. Safe to retry."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after

class PermanentServiceError(ServiceError):
    """Auth failures, bad requests and other errors a retry will not fix."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
