"""Error taxonomy shared by the Toast POS integration."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ToastError(RuntimeError):
    """Base error for every Toast integration failure."""


class ConfigurationError(ToastError):
    """Raised when required Toast settings are missing or invalid."""


class AuthenticationError(ToastError):
    """Raised when Toast refuses to issue an access token."""


class ApiRequestError(ToastError):
    """Raised when a Toast resource call fails (non-2xx, network, bad payload)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.path = path


class SyncFailure(BaseModel):
    """One resource that could not be fetched during a fan-out."""

    resource: str
    message: str


def vendor_error_message(body: Any) -> Optional[str]:
    """Best effort extraction of the human readable message from a Toast error body."""

    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None
    for key in ("message", "error_description", "error", "developerMessage"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
        if isinstance(first, str):
            return first
    return None


__all__ = [
    "ApiRequestError",
    "AuthenticationError",
    "ConfigurationError",
    "SyncFailure",
    "ToastError",
    "vendor_error_message",
]
