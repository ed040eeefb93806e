"""
Error taxonomy for the Secret Manager panel.

None of these escape the controller's intent methods: store failures are
caught at the controller boundary and recorded in ``state.error``.
"""

from __future__ import annotations


class SecretManagerError(Exception):
    """Base class for all Secret Manager errors."""


class StoreUnavailable(SecretManagerError):
    """No provider is configured for the requested capability."""

    def __init__(self, capability: str = "secret store") -> None:
        super().__init__(f"{capability} is not available")
        self.capability = capability


class RequestFailed(SecretManagerError):
    """A provider call returned a failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class Cancelled(SecretManagerError):
    """A request was superseded by a newer one. Never surfaced to users."""


UNKNOWN_ERROR = "Unknown error"


def error_message(exc: BaseException) -> str:
    """User-facing message for a failed provider call."""
    message = getattr(exc, "message", None) or str(exc)
    return message or UNKNOWN_ERROR
