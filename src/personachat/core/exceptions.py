"""Custom exceptions for the application."""


class PersonaChatException(Exception):
    """Base exception for all PersonaChat errors."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# Resource Exceptions
class ResourceNotFoundError(PersonaChatException):
    """Resource not found."""
    def __init__(self, resource: str, id):
        super().__init__(f"{resource} with id {id} not found", status_code=404)
        self.resource = resource
        self.resource_id = id


class ResourceAccessDeniedError(PersonaChatException):
    """Access denied to resource."""
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403)


# Quota Exceptions
class UsageLimitExceededError(PersonaChatException):
    """User has no generation quota left."""
    def __init__(self, user_id: int):
        super().__init__(f"Usage limit exceeded for user {user_id}", status_code=429)
        self.user_id = user_id


# Validation Exceptions
class InvalidInputError(PersonaChatException):
    """Invalid input data."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class InvalidStatusTransitionError(PersonaChatException):
    """Delivery status may only move forward."""
    def __init__(self, message_id: int, current: str, requested: str):
        super().__init__(
            f"Message {message_id} cannot move from '{current}' to '{requested}'",
            status_code=409,
        )
        self.message_id = message_id
        self.current = current
        self.requested = requested


# Capability Exceptions
class GenerationError(PersonaChatException):
    """Content generation failed."""
    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message, status_code=status_code)


class GenerationUnavailable(GenerationError):
    """Model endpoint unreachable, misconfigured or erroring."""
    def __init__(self, reason: str = "Generation backend unavailable"):
        super().__init__(reason, status_code=503)


class GenerationQuotaExceeded(GenerationError):
    """Model endpoint rate-limited us or our account is out of quota."""
    def __init__(self, reason: str = "Generation backend quota exceeded"):
        super().__init__(reason, status_code=503)


class CapabilityTimeoutError(PersonaChatException):
    """An external capability call did not finish in time."""
    def __init__(self, capability: str, timeout_seconds: float):
        super().__init__(
            f"{capability} timed out after {timeout_seconds:.1f}s", status_code=504
        )
        self.capability = capability
        self.timeout_seconds = timeout_seconds


class CircuitBreakerOpen(PersonaChatException):
    """Raised when circuit breaker is open."""
    def __init__(self, circuit_name: str, retry_after: float):
        super().__init__(
            f"Circuit breaker '{circuit_name}' is OPEN. "
            f"Retry after {retry_after:.1f}s",
            status_code=503,
        )
        self.circuit_name = circuit_name
        self.retry_after = retry_after


# Storage Exceptions
class StorageUnavailableError(PersonaChatException):
    """The storage gateway cannot serve requests at all."""
    def __init__(self, reason: str):
        super().__init__(f"Storage unavailable: {reason}", status_code=503)
