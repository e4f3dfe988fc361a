"""
Centralized error formatting for the CLI and for transports.

Errors cross a transport as plain data:

    {"error": "NO_MATCHING_VERSION", "message": "...", "details": {...}}

error_to_wire() produces that shape from an exception, error_from_wire()
turns it back into a RemoteError on the calling side. Error values that are
not exceptions are forwarded verbatim in both directions.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from rich.markup import escape

from capwire.core.result import (
    CapabilityInvocationError,
    CapwireError,
    ContractViolationError,
    InvalidRequestError,
    NoMatchingVersionError,
    RemoteError,
    TransportError,
    UnknownCapabilityError,
    UnsupportedMemberError,
)


class ErrorSeverity(Enum):
    """Severity levels for error display."""

    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass(frozen=True, slots=True)
class FormattedError:
    """A formatted error ready for display or transmission."""

    message: str
    severity: ErrorSeverity
    code: str
    details: dict[str, Any]
    traceback: str | None = None


def _error_code(exc: BaseException) -> str:
    """Derive an error code from exception type."""
    if isinstance(exc, RemoteError):
        return exc.code
    if isinstance(exc, InvalidRequestError):
        return "VALIDATION_ERROR"
    if isinstance(exc, UnknownCapabilityError):
        return "UNKNOWN_CAPABILITY"
    if isinstance(exc, NoMatchingVersionError):
        return "NO_MATCHING_VERSION"
    if isinstance(exc, UnsupportedMemberError):
        return "UNSUPPORTED"
    if isinstance(exc, CapabilityInvocationError):
        return "INVOCATION_ERROR"
    if isinstance(exc, TransportError):
        return "TRANSPORT_ERROR"
    if isinstance(exc, ContractViolationError):
        return "CONTRACT_VIOLATION"
    if isinstance(exc, CapwireError):
        return "CAPWIRE_ERROR"
    if isinstance(exc, TimeoutError):
        return "TIMEOUT"
    return "UNEXPECTED_ERROR"


def _severity(exc: BaseException) -> ErrorSeverity:
    """Determine severity based on exception type."""
    if isinstance(exc, ContractViolationError):
        return ErrorSeverity.CRITICAL
    if isinstance(exc, (InvalidRequestError, UnknownCapabilityError, NoMatchingVersionError, UnsupportedMemberError)):
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def format_error(
    exc: BaseException,
    *,
    include_traceback: bool = False,
) -> FormattedError:
    """Format an exception into a structured error.

    Args:
        exc: The exception to format
        include_traceback: Whether to include full traceback (for debugging)

    Returns:
        FormattedError ready for display
    """
    details: dict[str, Any] = {}
    message = str(exc)
    if isinstance(exc, CapwireError):
        details = {key: _plain(value) for key, value in exc.context.items()}
        message = exc.message

    tb = None
    if include_traceback:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return FormattedError(
        message=message,
        severity=_severity(exc),
        code=_error_code(exc),
        details=details,
        traceback=tb,
    )


# ---------------------------------------------------------------------------
# Wire formatting (plain data for transports)
# ---------------------------------------------------------------------------


def error_to_wire(error: Any) -> Any:
    """Encode a reply error as plain data; non-exceptions pass through."""
    if not isinstance(error, BaseException):
        return error

    formatted = format_error(error)
    payload: dict[str, Any] = {"error": formatted.code, "message": formatted.message}
    if formatted.details:
        payload["details"] = formatted.details
    return payload


def error_from_wire(payload: Any) -> Any:
    """Decode a reply error produced by error_to_wire()."""
    if isinstance(payload, dict) and isinstance(payload.get("error"), str) and "message" in payload:
        return RemoteError(
            str(payload["message"]),
            code=payload["error"],
            context=dict(payload.get("details") or {}),
        )
    return payload


# ---------------------------------------------------------------------------
# CLI Formatting (Rich markup)
# ---------------------------------------------------------------------------


def format_for_cli(error: FormattedError) -> str:
    """Format error for CLI display with Rich markup."""
    color_map = {
        ErrorSeverity.WARNING: "yellow",
        ErrorSeverity.ERROR: "red",
        ErrorSeverity.CRITICAL: "bold red",
    }
    color = color_map.get(error.severity, "red")

    parts = [f"[{color}]{error.code}[/{color}]: {escape(error.message)}"]

    if error.details:
        detail_lines = [f"  {k}: {escape(str(v))}" for k, v in error.details.items()]
        parts.append("\n".join(detail_lines))

    if error.traceback:
        parts.append(f"\n[dim]{escape(error.traceback)}[/dim]")

    return "\n".join(parts)


__all__ = [
    "ErrorSeverity",
    "FormattedError",
    "error_from_wire",
    "error_to_wire",
    "format_error",
    "format_for_cli",
]
