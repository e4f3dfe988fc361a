"""
Unified Result types and error hierarchy for capwire.

This module provides:
1. Result[T, E] type for explicit error handling
2. Domain-specific exception hierarchy
3. Helper functions for Result operations

Usage:
    from capwire.core.result import Ok, Err, Result, UnknownCapabilityError

    def resolve(name: str) -> Result[Capability, UnknownCapabilityError]:
        if name not in entries:
            return Err(UnknownCapabilityError(f"remote does not expose {name} api"))
        return Ok(entries[name])

    result = resolve("fs")
    if isinstance(result, Ok):
        print(result.value)
    else:
        print(result.error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Represents a successful result containing a value."""

    value: T

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply a function to the contained value."""
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Represents a failed result containing an error.

    Errors delivered by capabilities are forwarded verbatim, so ``error`` is
    usually an exception but may be any non-None value.
    """

    error: E

    def unwrap(self) -> Any:
        """Raise the contained error (wrapped when it is not an exception)."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise RemoteError(str(self.error), code="REMOTE_ERROR", context={"value": self.error})

    def map(self, fn: Callable[[T], U]) -> Err[E]:
        """No-op for Err - returns self unchanged."""
        return self


# Type alias for Result
Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class CapwireError(Exception):
    """Base exception for all capwire errors.

    All custom exceptions should inherit from this class to enable
    consistent error handling across the codebase.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InvalidCapabilityError(CapwireError):
    """Raised when a capability cannot be constructed.

    Examples:
    - Empty or non-string name
    - Missing or malformed semantic version
    - Function capability whose artifact is not callable
    """

    pass


class UnsupportedCapabilityError(InvalidCapabilityError):
    """Raised for capability kinds that are reserved but have no behavior."""

    pass


class ContractViolationError(CapwireError):
    """Raised for call-site defects that cannot be reported through a reply.

    Examples:
    - dispatch() called without an invokable reply
    - A transport without a send() operation
    """

    pass


class MissingCallbackError(ContractViolationError):
    """Raised when a remote proxy is invoked without a trailing callback."""

    pass


class ReplyAlreadySentError(ContractViolationError):
    """Raised when a capability invokes its reply more than once."""

    pass


class InvalidRequestError(CapwireError):
    """Delivered through the reply for malformed requests.

    Examples:
    - Missing, blank or non-string api name
    - Module call without a member name
    - Envelope fields of the wrong type
    """

    pass


class ResolutionError(CapwireError):
    """Base class for failures to resolve a capability."""

    pass


class UnknownCapabilityError(ResolutionError):
    """No capability is registered under the requested name."""

    pass


class NoMatchingVersionError(ResolutionError):
    """The name is known but no stored version satisfies the range."""

    pass


class UnsupportedMemberError(CapwireError):
    """The requested module member is missing or not invokable."""

    pass


class CapabilityInvocationError(CapwireError):
    """A capability raised before delivering its reply."""

    pass


class TransportError(CapwireError):
    """A transport failed to deliver a request or its reply."""

    pass


class RemoteError(CapwireError):
    """An error received from the remote side of a transport."""

    def __init__(self, message: str, *, code: str = "REMOTE_ERROR", context: dict | None = None) -> None:
        super().__init__(message, context=context)
        self.code = code


class ConfigurationError(CapwireError):
    """Raised for configuration issues.

    Examples:
    - Missing required config fields
    - Invalid config values
    - Config file parse errors
    """

    pass


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def try_result(fn: Callable[[], T], error_type: type[Exception] = CapwireError) -> Result[T, Exception]:
    """Execute a function and wrap the result in Ok/Err.

    Args:
        fn: Function to execute
        error_type: Exception type to catch (default: CapwireError)

    Returns:
        Ok(value) on success, Err(exception) on failure
    """
    try:
        return Ok(fn())
    except error_type as exc:
        return Err(exc)


__all__ = [
    # Result types
    "Ok",
    "Err",
    "Result",
    # Error hierarchy
    "CapwireError",
    "InvalidCapabilityError",
    "UnsupportedCapabilityError",
    "ContractViolationError",
    "MissingCallbackError",
    "ReplyAlreadySentError",
    "InvalidRequestError",
    "ResolutionError",
    "UnknownCapabilityError",
    "NoMatchingVersionError",
    "UnsupportedMemberError",
    "CapabilityInvocationError",
    "TransportError",
    "RemoteError",
    "ConfigurationError",
    # Helpers
    "try_result",
]
