"""Unit tests for exception hierarchy."""

from personachat.core.exceptions import (
    CapabilityTimeoutError,
    CircuitBreakerOpen,
    GenerationError,
    GenerationQuotaExceeded,
    GenerationUnavailable,
    InvalidStatusTransitionError,
    PersonaChatException,
    ResourceNotFoundError,
    StorageUnavailableError,
    UsageLimitExceededError,
)


def test_persona_chat_exception_base():
    """Test base exception carries message and status."""
    exc = PersonaChatException("test error")
    assert exc.message == "test error"
    assert exc.status_code == 400
    assert str(exc) == "test error"


def test_resource_not_found():
    exc = ResourceNotFoundError("Persona", 7)

    assert exc.resource == "Persona"
    assert exc.resource_id == 7
    assert exc.status_code == 404
    assert "Persona with id 7" in str(exc)


def test_usage_limit_exceeded():
    exc = UsageLimitExceededError(3)
    assert exc.user_id == 3
    assert exc.status_code == 429


def test_invalid_status_transition():
    exc = InvalidStatusTransitionError(12, "read", "delivered")

    assert exc.current == "read"
    assert exc.requested == "delivered"
    assert exc.status_code == 409
    assert "'read'" in str(exc)


def test_capability_timeout():
    exc = CapabilityTimeoutError("generation", 30.0)

    assert exc.capability == "generation"
    assert exc.timeout_seconds == 30.0
    assert "30.0s" in str(exc)


def test_circuit_breaker_open():
    exc = CircuitBreakerOpen("generation", 12.5)

    assert exc.circuit_name == "generation"
    assert exc.retry_after == 12.5
    assert "OPEN" in str(exc)


def test_storage_unavailable():
    exc = StorageUnavailableError("connection refused")
    assert exc.status_code == 503
    assert "connection refused" in str(exc)


def test_exception_inheritance():
    """Test exception hierarchy."""
    assert issubclass(GenerationUnavailable, GenerationError)
    assert issubclass(GenerationQuotaExceeded, GenerationError)
    assert issubclass(GenerationError, PersonaChatException)
    assert issubclass(StorageUnavailableError, PersonaChatException)
    assert issubclass(CapabilityTimeoutError, PersonaChatException)
