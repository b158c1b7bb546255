"""
Transport errors — typed failures carried inside kungfu Error.

Nothing here is raised: every fallible call returns
Result[T, TransportError].
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NetworkError:
    """No usable response: connection failure, timeout, garbage body."""

    message: str
    cause: Exception | None = None


@dataclass(frozen=True, slots=True)
class ApplicationError:
    """
    Well-formed failure response (success: false).

    message is the platform's own text when it sent one, else None.
    """

    message: str | None = None


@dataclass(frozen=True, slots=True)
class SessionError:
    """Anti-forgery token or session rejected. Nothing succeeds until refreshed."""

    message: str
    status: int | None = None


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Client-side precondition failed before any network call."""

    message: str
    field: str | None = None


type TransportError = NetworkError | ApplicationError | SessionError


def describe(error: TransportError | ValidationError, fallback: str) -> str:
    """Human-readable text, preferring the platform's own message."""
    match error:
        case ApplicationError(message=None):
            return fallback
        case ApplicationError(message=message) if message:
            return message
        case ValidationError(message=message):
            return message
        case _:
            return fallback


__all__ = (
    "NetworkError",
    "ApplicationError",
    "SessionError",
    "ValidationError",
    "TransportError",
    "describe",
)
